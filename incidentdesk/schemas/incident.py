from datetime import datetime
from typing import Any, Optional

from pydantic import ConfigDict, Field, JsonValue, StrictInt

from incidentdesk.schemas.comment import CommentRead
from incidentdesk.schemas.common import CamelModel, UserSummary
from incidentdesk.schemas.tenant import TenantSummary


class IncidentCreate(CamelModel):
    tenant_id: str
    incident_type_id: str
    title: str = Field(..., min_length=1, max_length=512)
    description: Optional[str] = None
    # Range is enforced by the lifecycle rules so the error is uniform.
    priority: StrictInt = 1
    data: dict[str, JsonValue] = Field(default_factory=dict)


class IncidentUpdate(CamelModel):
    """Partial update. Only fields present in the request body are applied."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[StrictInt] = None
    assigned_to: Optional[str] = None
    data: Optional[dict[str, JsonValue]] = None

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, by_alias=False)


class IncidentTypeSummary(CamelModel):
    id: str
    name: str
    priority: int


class IncidentRead(CamelModel):
    id: str
    tenant_id: str
    incident_type_id: str
    title: str
    description: Optional[str] = None
    status: str
    priority: int
    assigned_to: Optional[str] = None
    reported_by: str
    data: dict[str, JsonValue] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    tenant: Optional[TenantSummary] = None
    incident_type: Optional[IncidentTypeSummary] = None
    assignee: Optional[UserSummary] = None
    reporter: Optional[UserSummary] = None


class ActivityLogRead(CamelModel):
    id: int
    incident_id: str
    user_id: str
    action: str
    description: str
    metadata: dict[str, JsonValue] = Field(default_factory=dict, validation_alias="details")
    created_at: datetime
    user: Optional[UserSummary] = None


class IncidentDetailRead(IncidentRead):
    comments: list[CommentRead] = Field(default_factory=list)
    activity_logs: list[ActivityLogRead] = Field(default_factory=list)
