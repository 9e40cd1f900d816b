"""Entity Metadata Store.

The structured registry of every generated entity. Each public call opens
and commits its own session, so a write is visible to every later read in
the same logical operation.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session, selectinload

from sirhgen.core.types import (
    ChangelogEntry,
    EntityDefinition,
    EntitySummary,
    FieldDefinition,
    IncomingRelation,
    ManyToOne,
    OneToOne,
    make_relation,
)
from sirhgen.schema.models import Base, EntityRecord, FieldRecord, SchemaChangelog, utc_now

if TYPE_CHECKING:
    from sirhgen.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)


def _field_to_record(field: FieldDefinition, position: int) -> FieldRecord:
    record = FieldRecord(
        position=position,
        name=field.name,
        scalar_type=field.type.value if field.type is not None else None,
        is_required=field.required,
        is_unique=field.unique,
        default_value=json.dumps(field.default_value) if field.default_value is not None else None,
    )
    relation = field.relation
    if relation is not None:
        record.relation_type = relation.type
        record.relation_target = relation.target
        record.relation_target_table = relation.target_table
        record.inverse_side = relation.inverse_side
        record.mapped_by = relation.mapped_by
        if isinstance(relation, (ManyToOne, OneToOne)):
            record.on_delete = relation.on_delete.value
    return record


def _record_to_field(record: FieldRecord) -> FieldDefinition:
    values: dict[str, Any] = {
        "name": record.name,
        "required": record.is_required,
        "unique": record.is_unique,
        "default_value": json.loads(record.default_value) if record.default_value else None,
    }
    if record.relation_type:
        values["relation"] = make_relation(
            record.relation_type,
            target=record.relation_target,
            target_table=record.relation_target_table,
            inverse_side=record.inverse_side,
            mapped_by=record.mapped_by,
            on_delete=record.on_delete,
        )
    else:
        values["type"] = record.scalar_type
    return FieldDefinition(**values)


def _record_to_definition(record: EntityRecord) -> EntityDefinition:
    return EntityDefinition(
        name=record.name,
        table_name=record.table_name,
        fields=[_record_to_field(f) for f in record.fields],
    )


class EntityMetadataStore:
    """Durable registry of entity definitions.

    ``put`` never validates; validation is the orchestrator's job. Records
    are hard-deleted, field rows cascade with their entity.
    """

    def __init__(self, connection: DatabaseConnection) -> None:
        """Initialize the store.

        Args:
            connection: Database connection to use
        """
        self._connection = connection
        self._initialized = False

    def initialize(self) -> None:
        """Create registry tables if they don't exist."""
        if not self._initialized:
            Base.metadata.create_all(self._connection.engine)
            self._initialized = True

    def _get_session(self) -> Session:
        """Get a new database session."""
        self.initialize()
        return self._connection.get_session()

    def _find(self, session: Session, name: str) -> EntityRecord | None:
        return (
            session.query(EntityRecord)
            .options(selectinload(EntityRecord.fields))
            .filter_by(name=name)
            .first()
        )

    def put(self, definition: EntityDefinition) -> None:
        """Insert or fully replace the stored definition for ``definition.name``.

        Args:
            definition: Snapshot to store
        """
        with self._get_session() as session:
            record = self._find(session, definition.name)
            if record is None:
                record = EntityRecord(name=definition.name, table_name=definition.table_name)
                session.add(record)
            else:
                record.table_name = definition.table_name
                # Replacing field rows alone leaves the entity row untouched
                record.updated_at = utc_now()
                record.fields.clear()
                # Old rows must be gone before new ones reuse the (entity, name) key
                session.flush()

            for position, field in enumerate(definition.fields):
                record.fields.append(_field_to_record(field, position))

            session.commit()
        logger.debug(f"Stored definition of '{definition.name}' ({len(definition.fields)} fields)")

    def get(self, name: str) -> EntityDefinition | None:
        """Get an entity definition by name.

        Args:
            name: Entity name

        Returns:
            EntityDefinition or None if not found
        """
        with self._get_session() as session:
            record = self._find(session, name)
            return _record_to_definition(record) if record else None

    def exists(self, name: str) -> bool:
        """Check if an entity definition is stored."""
        with self._get_session() as session:
            return session.query(EntityRecord.id).filter_by(name=name).first() is not None

    def find_by_table(self, table_name: str) -> EntityDefinition | None:
        """Get the entity definition owning a physical table, if any."""
        with self._get_session() as session:
            record = (
                session.query(EntityRecord)
                .options(selectinload(EntityRecord.fields))
                .filter_by(table_name=table_name)
                .first()
            )
            return _record_to_definition(record) if record else None

    def remove(self, name: str) -> bool:
        """Delete the stored definition.

        Returns:
            True if a definition was removed, False if none was stored
        """
        with self._get_session() as session:
            record = self._find(session, name)
            if record is None:
                return False
            session.delete(record)
            session.commit()
        logger.debug(f"Removed definition of '{name}'")
        return True

    def names(self) -> list[str]:
        """List stored entity names, alphabetically."""
        with self._get_session() as session:
            return [n for (n,) in session.query(EntityRecord.name).order_by(EntityRecord.name)]

    def list(self) -> list[EntitySummary]:
        """Summaries of every stored entity, alphabetically."""
        with self._get_session() as session:
            records = (
                session.query(EntityRecord)
                .options(selectinload(EntityRecord.fields))
                .order_by(EntityRecord.name)
                .all()
            )
            return [
                EntitySummary(
                    name=r.name,
                    table_name=r.table_name,
                    field_count=len(r.fields),
                    relation_count=sum(1 for f in r.fields if f.relation_type),
                    created_at=r.created_at,
                    updated_at=r.updated_at,
                )
                for r in records
            ]

    def list_definitions(self) -> list[EntityDefinition]:
        """Full snapshots of every stored entity, alphabetically."""
        with self._get_session() as session:
            records = (
                session.query(EntityRecord)
                .options(selectinload(EntityRecord.fields))
                .order_by(EntityRecord.name)
                .all()
            )
            return [_record_to_definition(r) for r in records]

    def list_incoming_relations(self, name: str) -> list[IncomingRelation]:
        """Relations declared elsewhere whose target is ``name``.

        Sources that ``name`` itself already targets are left out, so a
        bidirectional pair is only reported once (as an outgoing relation).

        Args:
            name: Target entity name

        Returns:
            List of incoming relations, ordered by source entity then position
        """
        with self._get_session() as session:
            outgoing = {
                target
                for (target,) in session.query(FieldRecord.relation_target)
                .join(EntityRecord)
                .filter(EntityRecord.name == name, FieldRecord.relation_target.is_not(None))
            }
            rows = (
                session.query(EntityRecord.name, FieldRecord)
                .join(FieldRecord, FieldRecord.entity_id == EntityRecord.id)
                .filter(FieldRecord.relation_target == name)
                .order_by(EntityRecord.name, FieldRecord.position)
                .all()
            )
            return [
                IncomingRelation(
                    source_entity=source,
                    field_name=field.name,
                    relation_type=field.relation_type or "",
                    inverse_side=field.inverse_side,
                )
                for source, field in rows
                if source not in outgoing
            ]

    # === Changelog ===

    def log_change(
        self,
        operation: str,
        entity_name: str,
        field_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append an audit entry for a generator operation."""
        with self._get_session() as session:
            session.add(
                SchemaChangelog(
                    operation=operation,
                    entity_name=entity_name,
                    field_name=field_name,
                    details=json.dumps(details) if details is not None else None,
                )
            )
            session.commit()

    def get_changelog(
        self,
        entity_name: str | None = None,
        limit: int = 100,
    ) -> list[ChangelogEntry]:
        """Get changelog entries, newest first.

        Args:
            entity_name: Optional filter by entity name
            limit: Maximum entries to return

        Returns:
            List of changelog entries
        """
        with self._get_session() as session:
            query = session.query(SchemaChangelog).order_by(SchemaChangelog.timestamp.desc())

            if entity_name:
                query = query.filter_by(entity_name=entity_name)

            return [
                ChangelogEntry(
                    id=e.id,
                    timestamp=e.timestamp,
                    operation=e.operation,  # type: ignore[arg-type]
                    entity_name=e.entity_name,
                    field_name=e.field_name,
                    details=json.loads(e.details) if e.details else {},
                )
                for e in query.limit(limit).all()
            ]
