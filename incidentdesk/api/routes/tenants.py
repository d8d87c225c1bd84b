"""API routes for tenants and their incident types."""

from fastapi import APIRouter, Depends, status

from incidentdesk.api.deps import get_tenant_service
from incidentdesk.core.actor import Actor
from incidentdesk.schemas.tenant import (
    IncidentTypeCreate,
    IncidentTypeRead,
    TenantCreate,
    TenantDetailRead,
    TenantRead,
    TenantUpdate,
    TenantUserRead,
)
from incidentdesk.services.auth import get_current_actor, require_operator
from incidentdesk.services.tenants import TenantService

router = APIRouter(prefix="/api/tenants", tags=["tenants"])


@router.get("", response_model=list[TenantRead])
async def list_tenants(
    actor: Actor = Depends(get_current_actor),
    service: TenantService = Depends(get_tenant_service),
):
    """Operators see every tenant; clients only their own."""
    return await service.list_tenants(actor)


@router.post("", response_model=TenantRead, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    body: TenantCreate,
    actor: Actor = Depends(require_operator),
    service: TenantService = Depends(get_tenant_service),
):
    return await service.create(
        actor,
        name=body.name,
        slug=body.slug,
        description=body.description,
        config=body.config,
    )


@router.get("/{tenant_id}", response_model=TenantDetailRead)
async def get_tenant(
    tenant_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TenantService = Depends(get_tenant_service),
):
    """Tenant with its active incident types and its users."""
    detail = await service.get_detail(actor, tenant_id)
    summary = TenantRead.model_validate(detail.tenant)
    return TenantDetailRead(
        **summary.model_dump(),
        incident_types=[IncidentTypeRead.model_validate(t) for t in detail.incident_types],
        users=[TenantUserRead.model_validate(u) for u in detail.users],
    )


@router.patch("/{tenant_id}", response_model=TenantRead)
async def update_tenant(
    tenant_id: str,
    body: TenantUpdate,
    actor: Actor = Depends(require_operator),
    service: TenantService = Depends(get_tenant_service),
):
    return await service.update(actor, tenant_id, body.model_dump(exclude_unset=True))


@router.get("/{tenant_id}/incident-types", response_model=list[IncidentTypeRead])
async def list_incident_types(
    tenant_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TenantService = Depends(get_tenant_service),
):
    return await service.list_incident_types(actor, tenant_id)


@router.post(
    "/{tenant_id}/incident-types",
    response_model=IncidentTypeRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_incident_type(
    tenant_id: str,
    body: IncidentTypeCreate,
    actor: Actor = Depends(require_operator),
    service: TenantService = Depends(get_tenant_service),
):
    return await service.create_incident_type(
        actor,
        tenant_id,
        name=body.name,
        description=body.description,
        priority=body.priority,
        fields=[f.model_dump(exclude_none=True) for f in body.fields],
    )
