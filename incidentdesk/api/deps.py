"""Request-scoped service providers."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from incidentdesk.db import async_session_factory, get_db
from incidentdesk.services.broadcast import BroadcastRouter
from incidentdesk.services.comments import CommentService
from incidentdesk.services.incidents import IncidentService
from incidentdesk.services.tenants import TenantService


def get_broadcaster(request: Request) -> BroadcastRouter:
    return request.app.state.broadcaster


def get_incident_service(
    db: AsyncSession = Depends(get_db),
    broadcaster: BroadcastRouter = Depends(get_broadcaster),
) -> IncidentService:
    return IncidentService(db, broadcaster)


def get_comment_service(
    db: AsyncSession = Depends(get_db),
    broadcaster: BroadcastRouter = Depends(get_broadcaster),
) -> CommentService:
    return CommentService(db, broadcaster)


def get_tenant_service(db: AsyncSession = Depends(get_db)) -> TenantService:
    return TenantService(db)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for long-lived connections that open short sessions."""
    return async_session_factory
