from datetime import datetime
from typing import Optional

from pydantic import Field

from incidentdesk.schemas.common import CamelModel, UserSummary


class CommentCreate(CamelModel):
    incident_id: str
    content: str = Field(..., min_length=1)
    is_internal: bool = False


class CommentRead(CamelModel):
    id: str
    incident_id: str
    user_id: str
    content: str
    is_internal: bool
    created_at: datetime
    updated_at: datetime
    author: Optional[UserSummary] = None
