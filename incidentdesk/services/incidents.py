"""Incident orchestration.

``IncidentService`` is the single entry point that mutates incident state.
Each operation authorizes through the tenant scope before touching storage,
validates through the lifecycle rules, stages the audit entries on the same
session, commits once, and only then notifies real-time subscribers.
Notification problems are logged and never undo a committed change.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import and_, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from incidentdesk.core import tenant_scope
from incidentdesk.core.actor import Actor
from incidentdesk.core.enums import ActivityAction, IncidentStatus
from incidentdesk.core.errors import NotFound, ValidationError
from incidentdesk.core.forms import validate_incident_data
from incidentdesk.core.state_machine import (
    AuditEntry,
    IncidentStateMachine,
    parse_status,
    validate_priority,
)
from incidentdesk.core.visibility import visible_to
from incidentdesk.db.models import (
    ActivityLog,
    Comment,
    Incident,
    IncidentType,
    Tenant,
    User,
    _utcnow,
)
from incidentdesk.services.audit import ActivityAuditLog
from incidentdesk.services.broadcast import (
    INCIDENT_CREATED,
    INCIDENT_UPDATED,
    BroadcastRouter,
    incident_room,
    tenant_room,
)
from incidentdesk.services.unit_of_work import commit

logger = logging.getLogger(__name__)


@dataclass
class IncidentDetail:
    """An incident as one actor is allowed to see it."""

    incident: Incident
    comments: list[Comment] = field(default_factory=list)
    activity: list[ActivityLog] = field(default_factory=list)


async def load_incident(db: AsyncSession, incident_id: str, for_update: bool = False) -> Incident:
    q = (
        select(Incident)
        .where(Incident.id == incident_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        q = q.with_for_update()
    incident = (await db.execute(q)).scalar_one_or_none()
    if incident is None:
        raise NotFound("Incident not found", details={"incident_id": incident_id})
    return incident


async def load_incident_in_scope(db: AsyncSession, actor: Actor, incident_id: str) -> Incident:
    incident = await load_incident(db, incident_id)
    tenant_scope.ensure_access(actor, incident)
    return incident


def incident_event_payload(incident: Incident) -> dict[str, Any]:
    # Identity only; subscribers re-fetch through the authorized endpoints.
    return {"id": incident.id, "tenantId": incident.tenant_id}


class IncidentService:
    def __init__(
        self,
        db: AsyncSession,
        broadcaster: BroadcastRouter,
        state_machine: Optional[IncidentStateMachine] = None,
    ):
        self.db = db
        self.broadcaster = broadcaster
        self.state_machine = state_machine or IncidentStateMachine()
        self.audit = ActivityAuditLog(db)

    # ── create ────────────────────────────────────────────────────────

    async def create(
        self,
        actor: Actor,
        *,
        tenant_id: str,
        incident_type_id: str,
        title: str,
        description: Optional[str] = None,
        priority: int = 1,
        data: Optional[dict[str, Any]] = None,
    ) -> Incident:
        tenant_scope.ensure_tenant_access(actor, tenant_id)

        if not title or not title.strip():
            raise ValidationError("Title cannot be empty", details={"field": "title"})
        priority = validate_priority(priority)
        data = data or {}

        tenant = await self.db.get(Tenant, tenant_id)
        if tenant is None or not tenant.is_active:
            raise ValidationError("Unknown tenant", details={"field": "tenantId"})

        incident_type = await self.db.get(IncidentType, incident_type_id)
        if (
            incident_type is None
            or incident_type.tenant_id != tenant_id
            or not incident_type.is_active
        ):
            raise ValidationError(
                "Incident type does not exist for this tenant",
                details={"field": "incidentTypeId"},
            )
        validate_incident_data(incident_type.fields or [], data)

        now = _utcnow()
        incident = Incident(
            tenant_id=tenant_id,
            incident_type_id=incident_type_id,
            title=title,
            description=description,
            status=IncidentStatus.OPEN.value,
            priority=priority,
            reported_by=actor.id,
            data=data,
            created_at=now,
            updated_at=now,
        )
        self.db.add(incident)
        await self.db.flush()
        self.audit.record(
            incident.id,
            actor,
            AuditEntry(
                action=ActivityAction.CREATED,
                description=f"Incident created: {title}",
                metadata={"status": IncidentStatus.OPEN.value, "priority": priority},
            ),
            at=now,
        )
        await commit(self.db, "incident create")
        logger.info("Incident %s created in tenant %s by %s", incident.id, tenant_id, actor.id)

        incident = await load_incident(self.db, incident.id)
        await self._notify(tenant_room(incident.tenant_id), INCIDENT_CREATED, incident)
        return incident

    # ── read ──────────────────────────────────────────────────────────

    async def get(self, actor: Actor, incident_id: str) -> IncidentDetail:
        incident = await load_incident_in_scope(self.db, actor, incident_id)

        result = await self.db.execute(
            select(Comment)
            .where(Comment.incident_id == incident.id)
            .order_by(desc(Comment.created_at))
            .execution_options(populate_existing=True)
        )
        comments = visible_to(actor, result.scalars().all())
        activity = await self.audit.list_for(incident.id)
        return IncidentDetail(incident=incident, comments=comments, activity=activity)

    async def list_incidents(
        self,
        actor: Actor,
        status: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> list[Incident]:
        conditions = [tenant_scope.scope_filter(actor, Incident.tenant_id)]
        effective_tenant = tenant_scope.effective_tenant_filter(actor, tenant_id)
        if effective_tenant:
            conditions.append(Incident.tenant_id == effective_tenant)
        if status:
            conditions.append(Incident.status == parse_status(status).value)

        q = (
            select(Incident)
            .where(and_(*conditions))
            .order_by(desc(Incident.created_at))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def activity(self, actor: Actor, incident_id: str) -> list[ActivityLog]:
        incident = await load_incident_in_scope(self.db, actor, incident_id)
        return await self.audit.list_for(incident.id)

    # ── update ────────────────────────────────────────────────────────

    async def update(self, actor: Actor, incident_id: str, patch: dict[str, Any]) -> Incident:
        incident = await load_incident(self.db, incident_id, for_update=True)
        tenant_scope.ensure_access(actor, incident)

        assignee_label = None
        new_assignee = patch.get("assigned_to")
        if new_assignee is not None and new_assignee != incident.assigned_to:
            tenant_scope.ensure_operator(actor, "change incident assignment")
            assignee = await self.db.get(User, new_assignee)
            if assignee is None:
                raise ValidationError("Unknown assignee", details={"field": "assignedTo"})
            assignee_label = assignee.name

        if isinstance(patch.get("data"), dict):
            validate_incident_data(incident.incident_type.fields or [], patch["data"])

        now = _utcnow()
        incident, entries = self.state_machine.apply_update(
            incident, patch, actor, now=now, assignee_label=assignee_label
        )

        if not entries:
            return incident

        self.audit.record_all(incident.id, actor, entries, at=now)
        await commit(self.db, "incident update")
        logger.info(
            "Incident %s updated by %s: %s",
            incident.id, actor.id, ", ".join(e.action.value for e in entries),
        )

        incident = await load_incident(self.db, incident_id)
        await self._notify(tenant_room(incident.tenant_id), INCIDENT_UPDATED, incident)
        await self._notify(incident_room(incident.id), INCIDENT_UPDATED, incident)
        return incident

    # ── helpers ───────────────────────────────────────────────────────

    async def _notify(self, room_id: str, event_name: str, incident: Incident) -> None:
        try:
            await self.broadcaster.broadcast(room_id, event_name, incident_event_payload(incident))
        except Exception:
            logger.warning("Broadcast of %s to %s failed", event_name, room_id, exc_info=True)
