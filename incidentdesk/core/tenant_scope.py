"""Tenant isolation rules.

The only place that decides whether an actor may touch a tenant's data.
Operators are cross-tenant; clients are confined to the tenant they are
bound to. Nothing here is cached: callers evaluate the rules on every
request.
"""

from typing import Any, Optional

from sqlalchemy import ColumnElement, false, true

from incidentdesk.core.actor import Actor
from incidentdesk.core.errors import AccessDenied


def can_access_tenant(actor: Actor, tenant_id: Optional[str]) -> bool:
    if actor.is_operator:
        return True
    if actor.is_client:
        return actor.tenant_id is not None and tenant_id == actor.tenant_id
    return False


def can_access(actor: Actor, resource: Any) -> bool:
    """Check a tenant-owned resource (anything exposing ``tenant_id``)."""
    return can_access_tenant(actor, getattr(resource, "tenant_id", None))


def ensure_tenant_access(actor: Actor, tenant_id: Optional[str]) -> None:
    if not can_access_tenant(actor, tenant_id):
        raise AccessDenied(
            "Access denied",
            details={"reason": "tenant_mismatch"},
        )


def ensure_access(actor: Actor, resource: Any) -> None:
    ensure_tenant_access(actor, getattr(resource, "tenant_id", None))


def ensure_operator(actor: Actor, action: str) -> None:
    if not actor.is_operator:
        raise AccessDenied(
            f"Only operators may {action}",
            details={"reason": "operator_required"},
        )


def scope_filter(actor: Actor, tenant_column: Any) -> ColumnElement[bool]:
    """WHERE clause restricting a listing query to what the actor may see."""
    if actor.is_operator:
        return true()
    if actor.is_client and actor.tenant_id is not None:
        return tenant_column == actor.tenant_id
    return false()


def effective_tenant_filter(actor: Actor, requested: Optional[str]) -> Optional[str]:
    """Tenant id a listing is narrowed to.

    Clients are always pinned to their own tenant whatever they ask for;
    operators get the requested tenant or ``None`` for all tenants.
    """
    if actor.is_client:
        return actor.tenant_id
    return requested
