from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field

from incidentdesk.schemas.common import CamelModel
from incidentdesk.schemas.tenant import TenantSummary


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=2, max_length=128)
    role: Literal["operator", "client"]
    tenant_id: Optional[str] = None


class UserRead(CamelModel):
    """User data without credentials"""
    id: str
    email: str
    name: str
    role: str
    tenant_id: Optional[str] = None
    tenant: Optional[TenantSummary] = None
    created_at: datetime


class TokenResponse(CamelModel):
    token: str
    token_type: str = "bearer"
    user: UserRead
