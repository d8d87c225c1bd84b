"""Authentication routes: login, optional self-registration, current user."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from incidentdesk.config import settings
from incidentdesk.core.actor import Actor
from incidentdesk.core.enums import Role
from incidentdesk.core.errors import AccessDenied, NotFound, ValidationError
from incidentdesk.db import get_db
from incidentdesk.db.models import Tenant, User
from incidentdesk.schemas.auth import LoginRequest, RegisterRequest, TokenResponse, UserRead
from incidentdesk.services.auth import (
    authenticate,
    create_access_token,
    get_current_actor,
    hash_password,
)
from incidentdesk.services.unit_of_work import commit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Exchange email + password for a bearer token."""
    user = await authenticate(db, body.email, body.password)
    token = create_access_token(user.id, user.role)
    logger.info("User %s logged in", user.id)
    return TokenResponse(token=token, user=UserRead.model_validate(user))


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create an account. Disabled unless INCIDENTDESK_ALLOW_SELF_REGISTRATION is set."""
    if not settings.ALLOW_SELF_REGISTRATION:
        raise AccessDenied("Self-registration is disabled")

    existing = await db.execute(select(User.id).where(User.email == body.email))
    if existing.scalar_one_or_none() is not None:
        raise ValidationError("Email already registered", details={"field": "email"})

    tenant_id = None
    if body.role == Role.CLIENT.value:
        if not body.tenant_id:
            raise ValidationError("Client accounts need a tenant", details={"field": "tenantId"})
        if await db.get(Tenant, body.tenant_id) is None:
            raise ValidationError("Unknown tenant", details={"field": "tenantId"})
        tenant_id = body.tenant_id

    user = User(
        email=body.email,
        hashed_password=hash_password(body.password),
        name=body.name,
        role=body.role,
        tenant_id=tenant_id,
    )
    db.add(user)
    await commit(db, "register")

    result = await db.execute(
        select(User).where(User.id == user.id).execution_options(populate_existing=True)
    )
    user = result.scalar_one()
    logger.info("Registered %s user %s", user.role, user.id)
    return TokenResponse(
        token=create_access_token(user.id, user.role),
        user=UserRead.model_validate(user),
    )


@router.get("/me", response_model=UserRead)
async def me(actor: Actor = Depends(get_current_actor), db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(User).where(User.id == actor.id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user
