"""Diff engine for entity field sets.

Two fields are "the same" when their identity keys match: ``(name, type)``
for scalars, ``(name, kind, target)`` for relations. ``required``,
``unique`` and ``default_value`` are not part of the key, so changing only
those modifiers produces an empty diff. A rename is a remove plus an add.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from sirhgen.core.types import FieldDefinition, FieldIdentity


def field_key(field: FieldDefinition) -> FieldIdentity:
    """Identity key of a field for diffing."""
    return field.identity_key


@dataclass(frozen=True)
class FieldDiff:
    """Fields to add and remove to migrate one field set into another."""

    added: list[FieldDefinition] = field(default_factory=list)
    removed: list[FieldDefinition] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed

    @property
    def added_relations(self) -> list[FieldDefinition]:
        return [f for f in self.added if f.relation is not None]

    @property
    def removed_relations(self) -> list[FieldDefinition]:
        return [f for f in self.removed if f.relation is not None]


def diff(
    old_fields: Iterable[FieldDefinition],
    new_fields: Iterable[FieldDefinition],
) -> FieldDiff:
    """Compute the minimal add/remove sets between two field lists.

    Pure and deterministic. Results keep the order of their input list, so
    swapping the order of either input changes only the order of the output.

    Args:
        old_fields: Currently stored fields
        new_fields: Desired fields

    Returns:
        FieldDiff with ``added`` taken from ``new_fields`` and ``removed``
        taken from ``old_fields``
    """
    old_list = list(old_fields)
    new_list = list(new_fields)
    old_keys = {field_key(f) for f in old_list}
    new_keys = {field_key(f) for f in new_list}

    return FieldDiff(
        added=[f for f in new_list if field_key(f) not in old_keys],
        removed=[f for f in old_list if field_key(f) not in new_keys],
    )
