"""Authentication & session resolution: JWT tokens, password hashing, actor lookup.

Provides:
- Password hashing (bcrypt via passlib)
- JWT access token creation and verification
- FastAPI dependency turning a bearer token into an ``Actor``
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from incidentdesk.config import settings
from incidentdesk.core.actor import Actor
from incidentdesk.core.enums import Role
from incidentdesk.core.errors import AccessDenied, AuthenticationError
from incidentdesk.core.tenant_scope import ensure_operator
from incidentdesk.db import get_db
from incidentdesk.db.models import User

logger = logging.getLogger(__name__)

# ── Password hashing ─────────────────────────────────────────────────

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


# ── JWT tokens ────────────────────────────────────────────────────────

ALGORITHM = "HS256"

security = HTTPBearer(auto_error=False)


class TokenPayload(BaseModel):
    sub: str  # user_id
    role: str
    exp: datetime
    type: str  # "access"


def create_access_token(user_id: str, role: str) -> str:
    expires = datetime.now(timezone.utc) + timedelta(
        minutes=settings.JWT_ACCESS_TOKEN_MINUTES
    )
    payload = {
        "sub": user_id,
        "role": role,
        "exp": expires,
        "type": "access",
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> TokenPayload:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
        return TokenPayload(**payload)
    except (JWTError, ValueError) as e:
        raise AuthenticationError("Invalid token", details={"reason": str(e)})


# ── Actor resolution ──────────────────────────────────────────────────


def actor_from_user(user: User) -> Actor:
    try:
        role = Role(user.role)
    except ValueError:
        raise AccessDenied("Unsupported role", details={"role": user.role}) from None
    if role == Role.CLIENT and not user.tenant_id:
        raise AccessDenied("Client account is not bound to a tenant")
    return Actor(
        id=user.id,
        role=role,
        tenant_id=user.tenant_id if role == Role.CLIENT else None,
        name=user.name,
        email=user.email,
    )


async def resolve_actor(token: str, db: AsyncSession) -> Actor:
    """Turn a bearer token into an actor, or raise ``AuthenticationError``."""
    token_data = decode_token(token)
    if token_data.type != "access":
        raise AuthenticationError("Invalid token type; use an access token")

    result = await db.execute(
        select(User).where(User.id == token_data.sub).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise AuthenticationError("User not found")
    return actor_from_user(user)


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    result = await db.execute(
        select(User).where(User.email == email).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.hashed_password):
        logger.info("Failed login for %s", email)
        raise AuthenticationError("Invalid credentials")
    return user


# ── FastAPI dependencies ──────────────────────────────────────────────


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Extract and validate the current actor from the bearer token."""
    if not credentials:
        raise AuthenticationError("Access token required")
    return await resolve_actor(credentials.credentials, db)


async def require_operator(actor: Actor = Depends(get_current_actor)) -> Actor:
    ensure_operator(actor, "perform this action")
    return actor
