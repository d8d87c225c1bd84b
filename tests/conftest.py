"""Shared pytest fixtures for Incident Desk tests.

Provides:
- A fresh in-memory SQLite database per test
- The FastAPI app wired to that database, and an httpx AsyncClient on it
- Tenants, users and incident types for the common scenarios
- ``RecordingConnection``: a real-time subscriber that records frames
"""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Force test database
os.environ["INCIDENTDESK_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["INCIDENTDESK_JWT_SECRET"] = "test-secret-key-for-tests"

from incidentdesk.api.deps import get_session_factory  # noqa: E402
from incidentdesk.core.actor import Actor  # noqa: E402
from incidentdesk.core.enums import Role  # noqa: E402
from incidentdesk.db.engine import Base, get_db  # noqa: E402
from incidentdesk.db.models import IncidentType, Tenant, User  # noqa: E402
from incidentdesk.main import create_app  # noqa: E402
from incidentdesk.services.auth import create_access_token, hash_password  # noqa: E402

TEST_PASSWORD = "password123"
# bcrypt is slow on purpose; hash once for the whole run.
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)

HARDWARE_FIELDS = [
    {"name": "equipment_id", "type": "text", "label": "Equipment ID", "required": True},
    {"name": "location", "type": "text", "label": "Location", "required": False},
]


class RecordingConnection:
    """Stands in for a WebSocket: remembers every frame sent to it."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(data)

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.sent]


# ── Database fixtures ─────────────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def app(db_session, session_factory):
    """Fresh application (and therefore a fresh room registry) per test."""
    application = create_app()

    async def _override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = _override_get_db
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def hub(app):
    """The app's room registry; its writer tasks are stopped after the test."""
    yield app.state.broadcaster
    await app.state.broadcaster.close()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ── Factory helpers ───────────────────────────────────────────────────

async def create_tenant(db: AsyncSession, slug: str, name: str | None = None) -> Tenant:
    tenant = Tenant(name=name or slug.title(), slug=slug, config={})
    db.add(tenant)
    await db.commit()
    return tenant


async def create_user(
    db: AsyncSession,
    email: str,
    role: str,
    tenant: Tenant | None = None,
    name: str | None = None,
) -> User:
    user = User(
        email=email,
        hashed_password=TEST_PASSWORD_HASH,
        name=name or email.split("@")[0].title(),
        role=role,
        tenant_id=tenant.id if tenant else None,
    )
    db.add(user)
    await db.commit()
    return user


async def create_incident_type(
    db: AsyncSession,
    tenant: Tenant,
    name: str = "Hardware Failure",
    priority: int = 4,
    fields: list | None = None,
    is_active: bool = True,
) -> IncidentType:
    itype = IncidentType(
        tenant_id=tenant.id,
        name=name,
        priority=priority,
        fields=HARDWARE_FIELDS if fields is None else fields,
        is_active=is_active,
    )
    db.add(itype)
    await db.commit()
    return itype


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


def as_actor(user: User) -> Actor:
    role = Role(user.role)
    return Actor(
        id=user.id,
        role=role,
        tenant_id=user.tenant_id if role == Role.CLIENT else None,
        name=user.name,
        email=user.email,
    )


# ── Scenario fixtures ─────────────────────────────────────────────────

@pytest_asyncio.fixture
async def acme(db_session) -> Tenant:
    return await create_tenant(db_session, "acme", "ACME Corporation")


@pytest_asyncio.fixture
async def globex(db_session) -> Tenant:
    return await create_tenant(db_session, "globex", "Globex")


@pytest_asyncio.fixture
async def operator(db_session) -> User:
    return await create_user(db_session, "operator@example.com", "operator", name="John Operator")


@pytest_asyncio.fixture
async def acme_client(db_session, acme) -> User:
    return await create_user(db_session, "client@acme.example.com", "client", acme, name="Alice Johnson")


@pytest_asyncio.fixture
async def globex_client(db_session, globex) -> User:
    return await create_user(db_session, "client@globex.example.com", "client", globex, name="Gina Globex")


@pytest_asyncio.fixture
async def hardware_type(db_session, acme) -> IncidentType:
    return await create_incident_type(db_session, acme)


@pytest_asyncio.fixture
async def globex_type(db_session, globex) -> IncidentType:
    return await create_incident_type(db_session, globex, name="System Outage", priority=5, fields=[])


@pytest.fixture
def create_incident(client, acme, hardware_type):
    """POST an incident into ACME as ``user``; returns the response JSON."""

    async def _create(user: User, **overrides) -> dict:
        body = {
            "tenantId": acme.id,
            "incidentTypeId": hardware_type.id,
            "title": "Conveyor belt stopped",
            "description": "Main belt motor stopped during peak hours",
            "priority": 4,
            "data": {"equipment_id": "CONV-003-A"},
        }
        body.update(overrides)
        resp = await client.post("/api/incidents", json=body, headers=auth_headers(user))
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def auth():
    return auth_headers


@pytest.fixture
def actor_of():
    return as_actor


@pytest.fixture
def make_user(db_session):
    async def _make(email: str, role: str, tenant: Tenant | None = None, name: str | None = None) -> User:
        return await create_user(db_session, email, role, tenant, name)

    return _make


@pytest.fixture
def make_incident_type(db_session):
    async def _make(tenant: Tenant, **kwargs) -> IncidentType:
        return await create_incident_type(db_session, tenant, **kwargs)

    return _make


@pytest.fixture
def make_connection():
    return RecordingConnection
