"""Incident lifecycle rules.

Lifecycle::

    open ──► in_progress ──► completed
                  │              ▲
                  └──► escalated ┘

``open`` is the only initial state and ``completed`` is terminal. Requests
for any other edge raise ``InvalidTransition``; asking for the status the
incident already has is a no-op.

``apply_update`` validates the whole patch before touching the incident, so
a rejected patch leaves the record exactly as it was.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from incidentdesk.core.actor import Actor
from incidentdesk.core.enums import ActivityAction, IncidentStatus
from incidentdesk.core.errors import InvalidTransition, ValidationError
from incidentdesk.core.tenant_scope import ensure_operator

PRIORITY_MIN = 1
PRIORITY_MAX = 5

TRANSITIONS: dict[IncidentStatus, frozenset[IncidentStatus]] = {
    IncidentStatus.OPEN: frozenset({IncidentStatus.IN_PROGRESS}),
    IncidentStatus.IN_PROGRESS: frozenset({IncidentStatus.COMPLETED, IncidentStatus.ESCALATED}),
    IncidentStatus.ESCALATED: frozenset({IncidentStatus.COMPLETED}),
    IncidentStatus.COMPLETED: frozenset(),
}

UPDATABLE_FIELDS = frozenset({"title", "description", "status", "priority", "assigned_to", "data"})


@dataclass(frozen=True)
class AuditEntry:
    """One logically distinct change, ready to be written to the activity log."""

    action: ActivityAction
    description: str
    metadata: dict[str, Any] = field(default_factory=dict)


def parse_status(value: Any) -> IncidentStatus:
    try:
        return IncidentStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown status: {value!r}",
            details={"field": "status", "allowed": [s.value for s in IncidentStatus]},
        ) from None


def validate_priority(value: Any) -> int:
    # bool is an int subclass; True must not pass as priority 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            "Priority must be an integer",
            details={"field": "priority", "value": value},
        )
    if not PRIORITY_MIN <= value <= PRIORITY_MAX:
        raise ValidationError(
            f"Priority must be between {PRIORITY_MIN} and {PRIORITY_MAX}",
            details={"field": "priority", "value": value},
        )
    return value


def can_transition(current: IncidentStatus, target: IncidentStatus) -> bool:
    return target in TRANSITIONS[current]


def check_transition(current: IncidentStatus, target: IncidentStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move incident from {current.value} to {target.value}",
            details={
                "from": current.value,
                "to": target.value,
                "allowed": sorted(s.value for s in TRANSITIONS[current]),
            },
        )


class IncidentStateMachine:
    """Validates and applies a partial update to an incident record."""

    def apply_update(
        self,
        incident: Any,
        patch: dict[str, Any],
        actor: Actor,
        *,
        now: Optional[datetime] = None,
        assignee_label: Optional[str] = None,
    ) -> tuple[Any, list[AuditEntry]]:
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                "Fields cannot be updated: " + ", ".join(sorted(unknown)),
                details={"fields": sorted(unknown)},
            )

        changes: dict[str, Any] = {}
        entries: list[AuditEntry] = []

        # -- status ---------------------------------------------------------
        if "status" in patch:
            if patch["status"] is None:
                raise ValidationError("Status cannot be empty", details={"field": "status"})
            target = parse_status(patch["status"])
            current = parse_status(incident.status)
            if target != current:
                check_transition(current, target)
                changes["status"] = target.value
                entries.append(AuditEntry(
                    action=ActivityAction.STATUS_CHANGED,
                    description=f"Status changed from {current.value} to {target.value}",
                    metadata={"field": "status", "from": current.value, "to": target.value},
                ))

        # -- assignment -----------------------------------------------------
        if "assigned_to" in patch:
            new_assignee = patch["assigned_to"]
            if new_assignee is not None and not isinstance(new_assignee, str):
                raise ValidationError("assignedTo must be a user id", details={"field": "assignedTo"})
            if new_assignee != incident.assigned_to:
                ensure_operator(actor, "change incident assignment")
                changes["assigned_to"] = new_assignee
                if new_assignee is None:
                    description = "Incident unassigned"
                else:
                    description = f"Incident assigned to {assignee_label or new_assignee}"
                entries.append(AuditEntry(
                    action=ActivityAction.ASSIGNED,
                    description=description,
                    metadata={"field": "assignedTo", "from": incident.assigned_to, "to": new_assignee},
                ))

        # -- priority -------------------------------------------------------
        if "priority" in patch:
            priority = validate_priority(patch["priority"])
            if priority != incident.priority:
                changes["priority"] = priority
                entries.append(AuditEntry(
                    action=ActivityAction.UPDATED,
                    description=f"Priority changed from {incident.priority} to {priority}",
                    metadata={"field": "priority", "from": incident.priority, "to": priority},
                ))

        # -- plain fields ---------------------------------------------------
        edited: list[str] = []
        if "title" in patch:
            title = patch["title"]
            if not isinstance(title, str) or not title.strip():
                raise ValidationError("Title cannot be empty", details={"field": "title"})
            if title != incident.title:
                changes["title"] = title
                edited.append("title")
        if "description" in patch:
            description = patch["description"]
            if description is not None and not isinstance(description, str):
                raise ValidationError("Description must be text", details={"field": "description"})
            if description != incident.description:
                changes["description"] = description
                edited.append("description")
        if "data" in patch:
            data = patch["data"]
            if not isinstance(data, dict):
                raise ValidationError("data must be an object", details={"field": "data"})
            if data != (incident.data or {}):
                changes["data"] = data
                edited.append("data")
        if edited:
            entries.append(AuditEntry(
                action=ActivityAction.UPDATED,
                description="Updated " + ", ".join(edited),
                metadata={"fields": edited},
            ))

        if not changes:
            return incident, []

        # Everything validated; apply in one go.
        now = now or datetime.now(timezone.utc)
        for name, value in changes.items():
            setattr(incident, name, value)
        if "status" in changes:
            incident.resolved_at = now if changes["status"] == IncidentStatus.COMPLETED.value else None
        incident.updated_at = now
        return incident, entries
