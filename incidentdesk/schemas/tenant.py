from datetime import datetime
from typing import Optional

from pydantic import Field, JsonValue, StrictInt

from incidentdesk.schemas.common import CamelModel


class TenantCreate(CamelModel):
    """Schema for creating a tenant"""
    name: str = Field(..., min_length=1, max_length=256)
    slug: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = None
    config: dict[str, JsonValue] = Field(default_factory=dict)


class TenantUpdate(CamelModel):
    """Schema for updating a tenant"""
    name: Optional[str] = Field(None, min_length=1, max_length=256)
    slug: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = None
    config: Optional[dict[str, JsonValue]] = None
    is_active: Optional[bool] = None


class TenantSummary(CamelModel):
    id: str
    name: str
    slug: str


class TenantRead(TenantSummary):
    """Schema for reading tenant data"""
    description: Optional[str] = None
    config: dict[str, JsonValue] = Field(default_factory=dict)
    is_active: bool
    created_at: datetime
    updated_at: datetime


class FormFieldDefinition(CamelModel):
    name: str
    type: str  # text | textarea | number | select | checkbox
    label: Optional[str] = None
    required: bool = False
    options: Optional[list[str]] = None


class IncidentTypeCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=256)
    description: Optional[str] = None
    priority: StrictInt = 1
    fields: list[FormFieldDefinition] = Field(default_factory=list)


class IncidentTypeRead(CamelModel):
    id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    priority: int
    fields: list[FormFieldDefinition] = Field(default_factory=list)
    is_active: bool
    created_at: datetime
    updated_at: datetime


class TenantUserRead(CamelModel):
    id: str
    name: str
    email: str
    role: str


class TenantDetailRead(TenantRead):
    """Single tenant with its active incident types and its users."""
    incident_types: list[IncidentTypeRead] = Field(default_factory=list)
    users: list[TenantUserRead] = Field(default_factory=list)
