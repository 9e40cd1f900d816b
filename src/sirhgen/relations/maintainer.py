"""Relation consistency maintainer.

Keeps bidirectional relations valid across independently stored entity
definitions. Work is split in two phases: ``plan_*`` functions compute the
cross-entity edits from snapshots without touching anything, and
``apply`` performs each edit idempotently against the metadata store. A run
interrupted half way can be re-planned and re-applied safely.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sirhgen.core.naming import pluralize
from sirhgen.core.types import (
    EntityDefinition,
    FieldDefinition,
    ManyToMany,
    make_relation,
)
from sirhgen.exceptions import InvalidDefinitionError, RelationTargetUnresolved

if TYPE_CHECKING:
    from sirhgen.schema.store import EntityMetadataStore
    from sirhgen.storage.synchronizer import SchemaSynchronizer

logger = logging.getLogger(__name__)

DefinitionLookup = Callable[[str], EntityDefinition | None]


@dataclass(frozen=True)
class AddField:
    """Append ``field`` to ``entity_name`` unless a field of that name exists."""

    entity_name: str
    field: FieldDefinition
    source_entity: str


@dataclass(frozen=True)
class RemoveField:
    """Remove ``field_name`` from ``entity_name`` if present.

    When ``expected_target`` is set, the field is only removed if it is a
    relation to that entity; when ``mapped_by`` is set, only if it is the
    inverse of that owning field. A user field that happened to block an
    inverse is never deleted in its place.
    """

    entity_name: str
    field_name: str
    expected_target: str | None = None
    mapped_by: str | None = None


RelationEdit = AddField | RemoveField


def inverse_field_name(source_name: str, field: FieldDefinition) -> str:
    """Name of the inverse field a relation maintains on its target.

    Explicit ``inverse_side`` wins. Otherwise the lowercased source name,
    pluralized when the inverse is to-many (JobTitle -> jobtitles) and
    singular when it is one-to-one (JobTitle -> jobtitle).
    """
    relation = field.relation
    if relation is None:
        raise InvalidDefinitionError(
            f"Field '{field.name}' is not a relation",
            entity_name=source_name,
            field_name=field.name,
        )
    if relation.inverse_side:
        return relation.inverse_side
    base = source_name.lower()
    return pluralize(base) if relation.kind.inverse.is_to_many else base


def build_inverse_field(source: EntityDefinition, field: FieldDefinition) -> FieldDefinition:
    """The non-owning field that mirrors ``field`` on its target."""
    relation = field.relation
    if relation is None:
        raise InvalidDefinitionError(
            f"Field '{field.name}' is not a relation",
            entity_name=source.name,
            field_name=field.name,
        )
    return FieldDefinition(
        name=inverse_field_name(source.name, field),
        required=False,
        relation=make_relation(
            relation.kind.inverse,
            target=source.name,
            target_table=source.table_name,
            inverse_side=field.name,
            mapped_by=field.name,
        ),
    )


# === Planning (pure) ===


def plan_add_inverses(
    source: EntityDefinition,
    fields: Iterable[FieldDefinition],
    lookup: DefinitionLookup,
    system_entities: Mapping[str, str] | None = None,
) -> tuple[list[RelationEdit], list[RelationTargetUnresolved]]:
    """Plan the inverse fields for the owning relations among ``fields``.

    A relation to ``source`` itself is planned against ``source``, the
    snapshot being committed, rather than the stored copy.

    Args:
        source: Entity declaring the relations
        fields: Fields to plan for (all of ``source.fields``, or an added subset)
        lookup: Returns the stored definition of an entity, or None
        system_entities: Entities outside the generator; never patched

    Returns:
        Edits to apply and the unresolved targets (warnings, not errors)
    """
    system = system_entities or {}
    edits: list[RelationEdit] = []
    unresolved: list[RelationTargetUnresolved] = []
    planned: dict[str, set[str]] = {}

    for field in fields:
        relation = field.relation
        if relation is None or not relation.is_owner:
            continue

        target_name = relation.target
        if target_name in system:
            logger.info(
                f"'{source.name}.{field.name}' targets system entity '{target_name}'; "
                f"no inverse field maintained"
            )
            continue

        target = source if target_name == source.name else lookup(target_name)
        if target is None:
            unresolved.append(RelationTargetUnresolved(source.name, field.name, target_name))
            continue

        inverse = build_inverse_field(source, field)
        taken = planned.setdefault(target_name, set())
        if target.has_field(inverse.name) or inverse.name in taken:
            logger.info(
                f"Field '{target_name}.{inverse.name}' already exists; "
                f"inverse of '{source.name}.{field.name}' not added"
            )
            continue

        taken.add(inverse.name)
        edits.append(AddField(target_name, inverse, source.name))

    return edits, unresolved


def plan_remove_inverses(
    source_name: str, fields: Iterable[FieldDefinition]
) -> list[RemoveField]:
    """Plan removal of the inverses maintained for the owning relations in ``fields``."""
    edits: list[RemoveField] = []
    for field in fields:
        relation = field.relation
        if relation is None or not relation.is_owner:
            continue
        edits.append(
            RemoveField(
                relation.target,
                inverse_field_name(source_name, field),
                expected_target=source_name,
                mapped_by=field.name,
            )
        )
    return edits


def plan_cleanup_on_delete(
    deleted: EntityDefinition, others: Iterable[EntityDefinition]
) -> list[RelationEdit]:
    """Plan stripping every reference to ``deleted`` from the other entities.

    Covers the inverses of the deleted entity's own relations and any
    relation elsewhere that targets it.
    """
    edits: list[RelationEdit] = []
    seen: set[tuple[str, str]] = set()

    for edit in plan_remove_inverses(deleted.name, deleted.fields):
        if edit.entity_name != deleted.name:
            seen.add((edit.entity_name, edit.field_name))
            edits.append(edit)

    for other in others:
        if other.name == deleted.name:
            continue
        for field in other.fields:
            if field.relation is None or field.relation.target != deleted.name:
                continue
            if (other.name, field.name) in seen:
                continue
            seen.add((other.name, field.name))
            edits.append(RemoveField(other.name, field.name, expected_target=deleted.name))
    return edits


def apply_to_definition(
    definition: EntityDefinition, edits: Iterable[RelationEdit]
) -> EntityDefinition:
    """Apply the edits addressed to ``definition`` to a snapshot of it."""
    fields = list(definition.fields)
    for edit in edits:
        if edit.entity_name != definition.name:
            continue
        if isinstance(edit, AddField):
            if not any(f.name == edit.field.name for f in fields):
                fields.append(edit.field)
        else:
            fields = [f for f in fields if not _removes(edit, f)]
    return definition.with_fields(fields)


def _removes(edit: RemoveField, field: FieldDefinition) -> bool:
    if field.name != edit.field_name:
        return False
    relation = field.relation
    if edit.expected_target is not None:
        if relation is None or relation.target != edit.expected_target:
            return False
    if edit.mapped_by is not None:
        return relation is not None and relation.mapped_by == edit.mapped_by
    return True


# === Application (idempotent, against the store) ===


class RelationConsistencyMaintainer:
    """Adds and removes inverse fields on stored entity definitions."""

    def __init__(
        self,
        store: EntityMetadataStore,
        synchronizer: SchemaSynchronizer,
        system_entities: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the maintainer.

        Args:
            store: Metadata store holding the definitions to patch
            synchronizer: Used to drop orphaned junction tables
            system_entities: Entity name -> table of entities outside the generator
        """
        self._store = store
        self._synchronizer = synchronizer
        self._system_entities = dict(system_entities or {})

    def apply(self, edits: Iterable[RelationEdit]) -> dict[str, list[FieldDefinition]]:
        """Apply edits one at a time, each independently idempotent.

        Returns:
            Entity name -> fields actually added or removed on it
        """
        changed: dict[str, list[FieldDefinition]] = {}
        for edit in edits:
            target = self._store.get(edit.entity_name)
            if target is None:
                logger.warning(f"Entity '{edit.entity_name}' not found, skipping relation edit")
                continue

            if isinstance(edit, AddField):
                if target.has_field(edit.field.name):
                    logger.debug(f"'{edit.entity_name}.{edit.field.name}' already present")
                    continue
                self._store.put(target.with_fields([*target.fields, edit.field]))
                self._store.log_change(
                    "add_inverse",
                    edit.entity_name,
                    field_name=edit.field.name,
                    details={"source_entity": edit.source_entity},
                )
                changed.setdefault(edit.entity_name, []).append(edit.field)
                logger.info(f"Added inverse field '{edit.entity_name}.{edit.field.name}'")
            else:
                removed = [f for f in target.fields if _removes(edit, f)]
                if not removed:
                    logger.debug(f"'{edit.entity_name}.{edit.field_name}' already absent")
                    continue
                self._store.put(
                    target.with_fields([f for f in target.fields if not _removes(edit, f)])
                )
                self._store.log_change(
                    "remove_field",
                    edit.entity_name,
                    field_name=edit.field_name,
                    details={"reason": "relation cleanup"},
                )
                changed.setdefault(edit.entity_name, []).extend(removed)
                logger.info(f"Removed field '{edit.entity_name}.{edit.field_name}'")
        return changed

    def add_inverse(
        self, source: EntityDefinition, field: FieldDefinition
    ) -> RelationTargetUnresolved | None:
        """Ensure the target of ``field`` carries its inverse.

        Calling this twice adds the inverse once.

        Returns:
            The unresolved-target warning when the target is not registered
        """
        edits, unresolved = plan_add_inverses(
            source, [field], self._store.get, self._system_entities
        )
        self.apply(edits)
        for warning in unresolved:
            logger.warning(warning.message)
        return unresolved[0] if unresolved else None

    def remove_inverse(self, source_name: str, target_name: str, inverse_name: str) -> bool:
        """Delete the inverse field ``inverse_name`` from ``target_name`` if present.

        Returns:
            True if a field was removed
        """
        changed = self.apply([RemoveField(target_name, inverse_name, expected_target=source_name)])
        return bool(changed)

    def cleanup_on_delete(self, deleted: EntityDefinition) -> dict[str, list[FieldDefinition]]:
        """Strip every reference to ``deleted`` from the other stored entities.

        Returns:
            Entity name -> fields stripped from it
        """
        edits = plan_cleanup_on_delete(deleted, self._store.list_definitions())
        return self.apply(edits)

    def cleanup_orphaned_junctions(
        self,
        table_name: str,
        old_fields: Iterable[FieldDefinition],
        new_fields: Iterable[FieldDefinition],
    ) -> list[str]:
        """Drop the junction of every owning many-to-many that disappeared.

        A many-to-many survives when a field with the same name and target
        is still present in ``new_fields``.

        Returns:
            Names of the dropped junction tables
        """
        kept = {
            (f.name, f.relation.target)
            for f in new_fields
            if isinstance(f.relation, ManyToMany) and f.relation.is_owner
        }
        orphaned = [
            f
            for f in old_fields
            if isinstance(f.relation, ManyToMany)
            and f.relation.is_owner
            and (f.name, f.relation.target) not in kept
        ]
        dropped = self._synchronizer.junction_tables_for(table_name, orphaned)
        for junction in dropped:
            self._synchronizer.drop_junction_table(junction)
        return dropped
