"""Incident Desk - FastAPI application.

Multi-tenant incident tracking: tenants, incidents with a fixed lifecycle,
append-only activity, comments with internal notes, and real-time rooms.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from incidentdesk.api.errors import register_error_handlers
from incidentdesk.api.routes import auth, comments, incidents, realtime, tenants
from incidentdesk.config import settings
from incidentdesk.db import dispose_db, init_db
from incidentdesk.services.broadcast import BroadcastRouter

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    await init_db()
    logger.info("Database initialised")
    yield
    logger.info("Shutting down ...")
    await app.state.broadcaster.close()
    await dispose_db()


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Multi-tenant incident tracking with real-time updates",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.state.broadcaster = BroadcastRouter()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(auth.router)
    app.include_router(tenants.router)
    app.include_router(incidents.router)
    app.include_router(comments.router)
    app.include_router(realtime.router)

    @app.get("/", tags=["health"])
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "docs": "/docs",
        }

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
