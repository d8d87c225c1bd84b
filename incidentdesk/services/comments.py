"""Incident comments.

Clients may only see and author public comments. A comment and its
``commented`` activity entry are committed together; only public comments
are announced to the incident room.
"""

import logging

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from incidentdesk.core.actor import Actor
from incidentdesk.core.enums import ActivityAction
from incidentdesk.core.errors import ValidationError
from incidentdesk.core.state_machine import AuditEntry
from incidentdesk.core.visibility import resolve_internal_flag, visible_to
from incidentdesk.db.models import Comment, _utcnow
from incidentdesk.services.audit import ActivityAuditLog
from incidentdesk.services.broadcast import INCIDENT_COMMENTED, BroadcastRouter, incident_room
from incidentdesk.services.incidents import load_incident_in_scope
from incidentdesk.services.unit_of_work import commit

logger = logging.getLogger(__name__)


class CommentService:
    def __init__(self, db: AsyncSession, broadcaster: BroadcastRouter):
        self.db = db
        self.broadcaster = broadcaster
        self.audit = ActivityAuditLog(db)

    async def list_for_incident(self, actor: Actor, incident_id: str) -> list[Comment]:
        incident = await load_incident_in_scope(self.db, actor, incident_id)
        result = await self.db.execute(
            select(Comment)
            .where(Comment.incident_id == incident.id)
            .order_by(desc(Comment.created_at))
            .execution_options(populate_existing=True)
        )
        return visible_to(actor, result.scalars().all())

    async def create(
        self,
        actor: Actor,
        incident_id: str,
        content: str,
        is_internal: bool = False,
    ) -> Comment:
        incident = await load_incident_in_scope(self.db, actor, incident_id)
        if not content or not content.strip():
            raise ValidationError("Comment cannot be empty", details={"field": "content"})

        internal = resolve_internal_flag(actor, is_internal)
        now = _utcnow()
        comment = Comment(
            incident_id=incident.id,
            user_id=actor.id,
            content=content,
            is_internal=internal,
            created_at=now,
            updated_at=now,
        )
        self.db.add(comment)
        await self.db.flush()
        self.audit.record(
            incident.id,
            actor,
            AuditEntry(
                action=ActivityAction.COMMENTED,
                description="Added an internal comment" if internal else "Added a comment",
                metadata={"commentId": comment.id, "isInternal": internal},
            ),
            at=now,
        )
        await commit(self.db, "comment create")
        logger.info("Comment %s added to incident %s by %s", comment.id, incident.id, actor.id)

        result = await self.db.execute(
            select(Comment)
            .where(Comment.id == comment.id)
            .execution_options(populate_existing=True)
        )
        comment = result.scalar_one()

        if not internal:
            try:
                await self.broadcaster.broadcast(
                    incident_room(incident.id),
                    INCIDENT_COMMENTED,
                    {"id": incident.id, "tenantId": incident.tenant_id, "commentId": comment.id},
                )
            except Exception:
                logger.warning("Comment broadcast for incident %s failed", incident.id, exc_info=True)
        return comment
