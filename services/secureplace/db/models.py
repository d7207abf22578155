"""
SQLAlchemy database models for Secure Place.

All models use:
- UUID primary keys surfaced as strings (profile ids equal identity ids)
- snake_case column names
- Plural table names
- TIMESTAMPTZ with UTC for all timestamps
- Hard deletes (no soft delete columns)
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def generate_uuid7() -> uuid.UUID:
    """Generate a UUIDv7 (time-sortable UUID)."""
    # UUIDv7: timestamp in first 48 bits, version in bits 48-51, random in rest
    import time

    timestamp_ms = int(time.time() * 1000)
    rand_bytes = uuid.uuid4().bytes[6:]

    uuid_bytes = (
        timestamp_ms.to_bytes(6, "big")
        + bytes([0x70 | (rand_bytes[0] & 0x0F)])  # Version 7
        + bytes([0x80 | (rand_bytes[1] & 0x3F)])  # Variant
        + rand_bytes[2:]
    )
    return uuid.UUID(bytes=uuid_bytes)


def generate_id() -> str:
    """String form of a UUIDv7, for tables whose ids are handled as text."""
    return str(generate_uuid7())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all models."""

    type_annotation_map = {
        dict[str, Any]: JSONB,
    }


class Firm(Base):
    """Tenant organization.

    Referenced by profiles through a plain firm_id column (no FK). Deleting a
    firm leaves profiles pointing at nothing; readers treat that as no firm.
    """

    __tablename__ = "firms"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), primary_key=True, default=generate_id
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    industry: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class UserProfile(Base):
    """Primary profile record.

    PK equals the identity id issued by the identity service (shared key,
    not an independent lifecycle). Source of truth for role and firm.
    """

    __tablename__ = "user_profiles"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    employee_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_volunteer: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    firm_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class Profile(Base):
    """Mirror profile record kept for older readers.

    Denormalized copy of UserProfile. Written best-effort after the primary;
    never consulted for authorization.
    """

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    official_email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    firm_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    employee_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_volunteer: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class AuditLog(Base):
    """Audit log for administrative actions."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=generate_uuid7
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )

    # Event classification
    event_type: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True
    )  # 'auth', 'admin'
    action: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True
    )  # 'employee_provisioned', 'firm_deleted', etc.

    # Actor
    actor_type: Mapped[str] = mapped_column(String(20), nullable=False)  # 'user', 'system'
    actor_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Target
    target_type: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )  # 'employee', 'firm'
    target_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Request context
    request_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    details: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict, nullable=False)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_audit_logs_timestamp_event", "timestamp", "event_type"),
        Index("ix_audit_logs_actor", "actor_type", "actor_id"),
    )
