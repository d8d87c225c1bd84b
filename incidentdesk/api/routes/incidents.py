"""API routes for incidents: create, list, detail, partial update, activity."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from incidentdesk.api.deps import get_incident_service
from incidentdesk.core.actor import Actor
from incidentdesk.schemas.comment import CommentRead
from incidentdesk.schemas.incident import (
    ActivityLogRead,
    IncidentCreate,
    IncidentDetailRead,
    IncidentRead,
    IncidentUpdate,
)
from incidentdesk.services.auth import get_current_actor
from incidentdesk.services.incidents import IncidentService

router = APIRouter(prefix="/api/incidents", tags=["incidents"])


@router.get("", response_model=list[IncidentRead])
async def list_incidents(
    status_filter: Optional[str] = Query(None, alias="status"),
    tenant_id: Optional[str] = Query(None, alias="tenantId"),
    actor: Actor = Depends(get_current_actor),
    service: IncidentService = Depends(get_incident_service),
):
    """List incidents visible to the caller, newest first."""
    return await service.list_incidents(actor, status=status_filter, tenant_id=tenant_id)


@router.post("", response_model=IncidentRead, status_code=status.HTTP_201_CREATED)
async def create_incident(
    body: IncidentCreate,
    actor: Actor = Depends(get_current_actor),
    service: IncidentService = Depends(get_incident_service),
):
    return await service.create(
        actor,
        tenant_id=body.tenant_id,
        incident_type_id=body.incident_type_id,
        title=body.title,
        description=body.description,
        priority=body.priority,
        data=body.data,
    )


@router.get("/{incident_id}", response_model=IncidentDetailRead)
async def get_incident(
    incident_id: str,
    actor: Actor = Depends(get_current_actor),
    service: IncidentService = Depends(get_incident_service),
):
    """Incident with the comments and activity the caller may see."""
    detail = await service.get(actor, incident_id)
    # The ORM collections are never loaded; the filtered lists come from the service.
    summary = IncidentRead.model_validate(detail.incident)
    return IncidentDetailRead(
        **summary.model_dump(),
        comments=[CommentRead.model_validate(c) for c in detail.comments],
        activity_logs=[ActivityLogRead.model_validate(a) for a in detail.activity],
    )


@router.put("/{incident_id}", response_model=IncidentRead)
@router.patch("/{incident_id}", response_model=IncidentRead)
async def update_incident(
    incident_id: str,
    body: IncidentUpdate,
    actor: Actor = Depends(get_current_actor),
    service: IncidentService = Depends(get_incident_service),
):
    """Partial update. Status changes must follow the incident lifecycle."""
    return await service.update(actor, incident_id, body.to_patch())


@router.get("/{incident_id}/activity", response_model=list[ActivityLogRead])
async def get_incident_activity(
    incident_id: str,
    actor: Actor = Depends(get_current_actor),
    service: IncidentService = Depends(get_incident_service),
):
    return await service.activity(actor, incident_id)
