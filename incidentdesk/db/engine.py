"""Async engine, session factory and declarative base.

SQLite (aiosqlite) serves local development and the test suite; PostgreSQL
(asyncpg) is the production target. Both go through the same URL setting.
"""

from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from incidentdesk.config import settings

engine = create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)

if engine.dialect.name == "sqlite":

    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_on_connect(dbapi_conn, connection_record):
        # SQLite leaves foreign key enforcement off unless asked.
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()


# Services hand committed objects back to the API layer for serialization.
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session.

    Services commit their own units of work; whatever is still pending when
    the request ends is discarded when the session closes.
    """
    async with async_session_factory() as session:
        yield session


async def init_db() -> None:
    """Create missing tables. Alembic owns schema changes after first run."""
    from incidentdesk.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    await engine.dispose()
