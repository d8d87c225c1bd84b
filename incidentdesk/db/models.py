"""SQLAlchemy ORM models for Incident Desk.

All persistent entities: tenants, users, incident types, incidents,
activity logs and comments.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    JSON,
    Index,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .engine import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


# ── Tenants ────────────────────────────────────────────────────────────


class Tenant(Base):
    """Customer organization; owns its incident types and incidents."""
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    slug: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    config: Mapped[dict] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # relationships
    incident_types: Mapped[list["IncidentType"]] = relationship(
        back_populates="tenant", lazy="raise"
    )


# ── Users ──────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(256), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(256), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)  # operator | client
    tenant_id: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("tenants.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # relationships
    tenant: Mapped[Optional["Tenant"]] = relationship(lazy="selectin")


# ── Incident types ─────────────────────────────────────────────────────


class IncidentType(Base):
    """Tenant-scoped template defining the shape of an incident's data."""
    __tablename__ = "incident_types"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("tenants.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=1)  # 1..5
    fields: Mapped[list] = mapped_column(JSON, default=list)  # [{name, type, label, required, options}]
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # relationships
    tenant: Mapped["Tenant"] = relationship(back_populates="incident_types", lazy="selectin")

    __table_args__ = (
        Index("ix_incident_types_tenant", "tenant_id"),
    )


# ── Incidents ──────────────────────────────────────────────────────────


class Incident(Base):
    __tablename__ = "incidents"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("tenants.id"), nullable=False
    )
    incident_type_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("incident_types.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(24), default="open")  # open|in_progress|completed|escalated
    priority: Mapped[int] = mapped_column(Integer, default=1)  # 1..5
    assigned_to: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("users.id"), nullable=True
    )
    reported_by: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id"), nullable=False
    )
    data: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # relationships
    tenant: Mapped["Tenant"] = relationship(lazy="selectin")
    incident_type: Mapped["IncidentType"] = relationship(lazy="selectin")
    assignee: Mapped[Optional["User"]] = relationship(
        foreign_keys=[assigned_to], lazy="selectin"
    )
    reporter: Mapped["User"] = relationship(foreign_keys=[reported_by], lazy="selectin")
    comments: Mapped[list["Comment"]] = relationship(
        back_populates="incident", lazy="raise", cascade="all, delete-orphan",
        passive_deletes=True,
    )
    activity_logs: Mapped[list["ActivityLog"]] = relationship(
        back_populates="incident", lazy="raise", cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_incidents_tenant", "tenant_id"),
        Index("ix_incidents_status", "status"),
        Index("ix_incidents_created", "created_at"),
    )


# ── Activity log ───────────────────────────────────────────────────────


class ActivityLog(Base):
    """Append-only audit trail for incidents."""
    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    incident_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id"), nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)  # created|updated|assigned|commented|status_changed
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    details: Mapped[Optional[dict]] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    # relationships
    incident: Mapped["Incident"] = relationship(back_populates="activity_logs")
    user: Mapped["User"] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_activity_incident", "incident_id"),
    )


@event.listens_for(ActivityLog, "before_update")
def _reject_activity_update(mapper, connection, target):
    raise RuntimeError(f"activity log entry {target.id} is immutable")


@event.listens_for(ActivityLog, "before_delete")
def _reject_activity_delete(mapper, connection, target):
    raise RuntimeError(f"activity log entry {target.id} cannot be deleted")


# ── Comments ───────────────────────────────────────────────────────────


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    incident_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False)  # operators only
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # relationships
    incident: Mapped["Incident"] = relationship(back_populates="comments")
    author: Mapped["User"] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_comments_incident", "incident_id"),
    )
