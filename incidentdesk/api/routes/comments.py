"""API routes for incident comments."""

from fastapi import APIRouter, Depends, status

from incidentdesk.api.deps import get_comment_service
from incidentdesk.core.actor import Actor
from incidentdesk.schemas.comment import CommentCreate, CommentRead
from incidentdesk.services.auth import get_current_actor
from incidentdesk.services.comments import CommentService

router = APIRouter(prefix="/api/comments", tags=["comments"])


@router.get("/incident/{incident_id}", response_model=list[CommentRead])
async def list_comments(
    incident_id: str,
    actor: Actor = Depends(get_current_actor),
    service: CommentService = Depends(get_comment_service),
):
    return await service.list_for_incident(actor, incident_id)


@router.post("", response_model=CommentRead, status_code=status.HTTP_201_CREATED)
async def create_comment(
    body: CommentCreate,
    actor: Actor = Depends(get_current_actor),
    service: CommentService = Depends(get_comment_service),
):
    """Add a comment. Internal comments are only honoured for operators."""
    return await service.create(actor, body.incident_id, body.content, body.is_internal)
