"""Append-only activity log for incidents.

Entries are staged on the caller's session and commit together with the
mutation they describe; this module never commits on its own. There is no
update or delete path.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from incidentdesk.core.actor import Actor
from incidentdesk.core.state_machine import AuditEntry
from incidentdesk.db.models import ActivityLog, _utcnow

logger = logging.getLogger(__name__)


class ActivityAuditLog:
    def __init__(self, db: AsyncSession):
        self.db = db

    def record(
        self,
        incident_id: str,
        actor: Actor,
        entry: AuditEntry,
        at: Optional[datetime] = None,
    ) -> ActivityLog:
        log = ActivityLog(
            incident_id=incident_id,
            user_id=actor.id,
            action=entry.action.value,
            description=entry.description,
            details=dict(entry.metadata),
            created_at=at or _utcnow(),
        )
        self.db.add(log)
        logger.debug("Staged %s entry for incident %s", entry.action.value, incident_id)
        return log

    def record_all(
        self,
        incident_id: str,
        actor: Actor,
        entries: list[AuditEntry],
        at: Optional[datetime] = None,
    ) -> list[ActivityLog]:
        at = at or _utcnow()
        return [self.record(incident_id, actor, e, at) for e in entries]

    async def list_for(self, incident_id: str, limit: Optional[int] = None) -> list[ActivityLog]:
        """Entries for one incident, most recent first."""
        q = (
            select(ActivityLog)
            .where(ActivityLog.incident_id == incident_id)
            .order_by(desc(ActivityLog.created_at), desc(ActivityLog.id))
            .execution_options(populate_existing=True)
        )
        if limit:
            q = q.limit(limit)
        result = await self.db.execute(q)
        return list(result.scalars().all())
