"""Tenants and their incident types."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from incidentdesk.core import tenant_scope
from incidentdesk.core.actor import Actor
from incidentdesk.core.errors import NotFound, ValidationError
from incidentdesk.core.forms import validate_field_definitions
from incidentdesk.core.state_machine import validate_priority
from incidentdesk.db.models import IncidentType, Tenant, User
from incidentdesk.services.unit_of_work import commit

logger = logging.getLogger(__name__)

TENANT_FIELDS = ("name", "slug", "description", "config", "is_active")


@dataclass
class TenantDetail:
    tenant: Tenant
    incident_types: list[IncidentType] = field(default_factory=list)
    users: list[User] = field(default_factory=list)


class TenantService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_tenants(self, actor: Actor) -> list[Tenant]:
        q = (
            select(Tenant)
            .where(tenant_scope.scope_filter(actor, Tenant.id))
            .order_by(Tenant.name)
        )
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def get(self, actor: Actor, tenant_id: str) -> Tenant:
        tenant_scope.ensure_tenant_access(actor, tenant_id)
        tenant = await self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFound("Tenant not found", details={"tenant_id": tenant_id})
        return tenant

    async def get_detail(self, actor: Actor, tenant_id: str) -> TenantDetail:
        """Tenant plus its active incident types and its users."""
        tenant = await self.get(actor, tenant_id)
        incident_types = await self.list_incident_types(actor, tenant_id)
        result = await self.db.execute(
            select(User)
            .where(User.tenant_id == tenant_id)
            .order_by(User.name)
            .execution_options(populate_existing=True)
        )
        return TenantDetail(
            tenant=tenant,
            incident_types=incident_types,
            users=list(result.scalars().all()),
        )

    async def create(
        self,
        actor: Actor,
        *,
        name: str,
        slug: str,
        description: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
    ) -> Tenant:
        tenant_scope.ensure_operator(actor, "create tenants")
        await self._ensure_slug_free(slug)

        tenant = Tenant(name=name, slug=slug, description=description, config=config or {})
        self.db.add(tenant)
        await commit(self.db, "tenant create")
        logger.info("Tenant %s (%s) created by %s", tenant.id, slug, actor.id)
        return tenant

    async def update(self, actor: Actor, tenant_id: str, changes: dict[str, Any]) -> Tenant:
        tenant_scope.ensure_operator(actor, "update tenants")
        tenant = await self.get(actor, tenant_id)

        unknown = set(changes) - set(TENANT_FIELDS)
        if unknown:
            raise ValidationError(
                "Fields cannot be updated: " + ", ".join(sorted(unknown)),
                details={"fields": sorted(unknown)},
            )
        if changes.get("slug") and changes["slug"] != tenant.slug:
            await self._ensure_slug_free(changes["slug"])

        for key, value in changes.items():
            if value is None and key in ("name", "slug", "is_active", "config"):
                raise ValidationError(f"{key} cannot be empty", details={"field": key})
            setattr(tenant, key, value)
        await commit(self.db, "tenant update")
        return await self._reload(tenant.id)

    async def _ensure_slug_free(self, slug: str) -> None:
        result = await self.db.execute(select(Tenant.id).where(Tenant.slug == slug))
        if result.scalar_one_or_none() is not None:
            raise ValidationError("Slug already in use", details={"field": "slug"})

    async def _reload(self, tenant_id: str) -> Tenant:
        result = await self.db.execute(
            select(Tenant)
            .where(Tenant.id == tenant_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    # ── incident types ────────────────────────────────────────────────

    async def list_incident_types(self, actor: Actor, tenant_id: str) -> list[IncidentType]:
        await self.get(actor, tenant_id)
        q = (
            select(IncidentType)
            .where(and_(IncidentType.tenant_id == tenant_id, IncidentType.is_active.is_(True)))
            .order_by(IncidentType.name)
        )
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def create_incident_type(
        self,
        actor: Actor,
        tenant_id: str,
        *,
        name: str,
        description: Optional[str] = None,
        priority: int = 1,
        fields: Optional[list[dict[str, Any]]] = None,
    ) -> IncidentType:
        tenant_scope.ensure_operator(actor, "define incident types")
        await self.get(actor, tenant_id)

        incident_type = IncidentType(
            tenant_id=tenant_id,
            name=name,
            description=description,
            priority=validate_priority(priority),
            fields=validate_field_definitions(fields or []),
        )
        self.db.add(incident_type)
        await commit(self.db, "incident type create")
        logger.info("Incident type %s created for tenant %s", incident_type.id, tenant_id)

        result = await self.db.execute(
            select(IncidentType)
            .where(IncidentType.id == incident_type.id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
