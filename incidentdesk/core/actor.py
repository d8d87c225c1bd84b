"""Authenticated principal attached to every request."""

from dataclasses import dataclass
from typing import Optional

from incidentdesk.core.enums import Role


@dataclass(frozen=True)
class Actor:
    id: str
    role: Role
    tenant_id: Optional[str] = None
    name: str = ""
    email: str = ""

    @property
    def is_operator(self) -> bool:
        return self.role == Role.OPERATOR

    @property
    def is_client(self) -> bool:
        return self.role == Role.CLIENT
