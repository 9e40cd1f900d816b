"""SQLAlchemy ORM models for the generator's metadata registry.

These tables are the single source of truth for every generated entity:
its table, its ordered fields and the relation edges between entities.
Generated source artifacts are output only and are never read back.
"""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def generate_uuid() -> str:
    """Generate a new UUID as string."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all registry models."""

    pass


class EntityRecord(Base):
    """Stores one generated entity (like Employee, Skill, Department)."""

    __tablename__ = "sg_entity_definitions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    table_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    fields: Mapped[list[FieldRecord]] = relationship(
        "FieldRecord",
        back_populates="entity",
        cascade="all, delete-orphan",
        order_by="FieldRecord.position",
    )


class FieldRecord(Base):
    """Stores one field of an entity, scalar or relational."""

    __tablename__ = "sg_field_definitions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    entity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sg_entity_definitions.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    scalar_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_unique: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # JSON-encoded literal so booleans and numbers survive the round trip
    default_value: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relation columns (all NULL for scalar fields)
    relation_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    relation_target: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    relation_target_table: Mapped[str | None] = mapped_column(String(255), nullable=True)
    inverse_side: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mapped_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    on_delete: Mapped[str | None] = mapped_column(String(50), nullable=True)

    entity: Mapped[EntityRecord] = relationship("EntityRecord", back_populates="fields")

    __table_args__ = (Index("ix_sg_field_entity_name", "entity_id", "name", unique=True),)


class SchemaChangelog(Base):
    """Audit trail for generator operations."""

    __tablename__ = "sg_schema_changelog"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False, index=True
    )
    operation: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    field_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
