"""Parsing and validation of incoming entity definitions.

Everything here runs before any side effect: a definition that fails these
checks never reaches the synchronizer, the artifact writer or the store.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from sirhgen.core.naming import default_table_name
from sirhgen.core.types import EntityDefinition, FieldDefinition, OneToMany
from sirhgen.exceptions import InvalidDefinitionError, UnknownScalarTypeError

ENTITY_NAME_PATTERN = re.compile(r"^[A-Z][A-Za-z0-9]*$")
TABLE_NAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")
FIELD_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# PostgreSQL truncates identifiers longer than this
MAX_IDENTIFIER_LENGTH = 63

# Columns every generated table carries
RESERVED_COLUMNS = frozenset({"id", "created_at", "updated_at"})


def _field_name_at(data: Any, index: Any) -> str | None:
    try:
        name = data["fields"][index]["name"]
    except (KeyError, IndexError, TypeError):
        return None
    return name if isinstance(name, str) else None


def parse_definition(data: dict[str, Any] | EntityDefinition) -> EntityDefinition:
    """Build an EntityDefinition from its wire form.

    A missing ``tableName`` is derived from the entity name
    (``JobTitle`` -> ``job_titles``).

    Raises:
        UnknownScalarTypeError: If a field declares an unsupported type
        InvalidDefinitionError: For any other malformed input
    """
    if isinstance(data, EntityDefinition):
        return data
    if not isinstance(data, dict):
        raise InvalidDefinitionError(
            f"Entity definition must be an object, got {type(data).__name__}"
        )

    payload = dict(data)
    name = payload.get("name")
    if "tableName" not in payload and "table_name" not in payload and isinstance(name, str):
        payload["tableName"] = default_table_name(name)

    try:
        return EntityDefinition.model_validate(payload)
    except ValidationError as e:
        raise _translate_validation_error(e, payload) from e


def _translate_validation_error(
    error: ValidationError, data: dict[str, Any]
) -> InvalidDefinitionError:
    entity_name = data.get("name") if isinstance(data.get("name"), str) else None
    first = error.errors()[0]
    loc = first["loc"]

    field_name = None
    if len(loc) >= 2 and loc[0] == "fields":
        field_name = _field_name_at(data, loc[1])

    if len(loc) == 3 and loc[0] == "fields" and loc[2] == "type" and first["type"] == "enum":
        return UnknownScalarTypeError(str(first["input"]), field_name or "?", entity_name)

    location = ".".join(str(part) for part in loc) or "definition"
    return InvalidDefinitionError(
        f"Invalid entity definition at '{location}': {first['msg']}",
        entity_name=entity_name,
        field_name=field_name,
    )


def validate_definition(definition: EntityDefinition) -> None:
    """Check names, duplicates and column collisions.

    Raises:
        InvalidDefinitionError: On the first problem found, naming the field
    """
    name = definition.name
    if not ENTITY_NAME_PATTERN.match(name):
        raise InvalidDefinitionError(
            f"Entity name '{name}' must be PascalCase (letters and digits, leading capital)",
            entity_name=name,
        )

    table = definition.table_name
    if not TABLE_NAME_PATTERN.match(table) or len(table) > MAX_IDENTIFIER_LENGTH:
        raise InvalidDefinitionError(
            f"Table name '{table}' must be lowercase snake_case, "
            f"at most {MAX_IDENTIFIER_LENGTH} characters",
            entity_name=name,
        )

    seen: set[str] = set()
    columns: dict[str, str] = {}
    for field in definition.fields:
        _validate_field(definition, field)

        if field.name in seen:
            raise InvalidDefinitionError(
                f"Duplicate field name '{field.name}' on entity '{name}'",
                entity_name=name,
                field_name=field.name,
            )
        seen.add(field.name)

        column = field.column_name
        if column is None:
            continue
        if column in RESERVED_COLUMNS:
            raise InvalidDefinitionError(
                f"Field '{field.name}' maps to reserved column '{column}'",
                entity_name=name,
                field_name=field.name,
            )
        if column in columns:
            raise InvalidDefinitionError(
                f"Fields '{columns[column]}' and '{field.name}' both map to column '{column}'",
                entity_name=name,
                field_name=field.name,
            )
        columns[column] = field.name


def _validate_field(definition: EntityDefinition, field: FieldDefinition) -> None:
    if not FIELD_NAME_PATTERN.match(field.name) or len(field.name) > MAX_IDENTIFIER_LENGTH:
        raise InvalidDefinitionError(
            f"Field name '{field.name}' is not a valid identifier",
            entity_name=definition.name,
            field_name=field.name,
        )
    if field.name in RESERVED_COLUMNS:
        raise InvalidDefinitionError(
            f"Field name '{field.name}' is reserved (every table has id, created_at, updated_at)",
            entity_name=definition.name,
            field_name=field.name,
        )

    relation = field.relation
    if relation is None:
        return
    if not ENTITY_NAME_PATTERN.match(relation.target):
        raise InvalidDefinitionError(
            f"Relation target '{relation.target}' on field '{field.name}' is not an entity name",
            entity_name=definition.name,
            field_name=field.name,
        )
    if relation.inverse_side is not None and not FIELD_NAME_PATTERN.match(relation.inverse_side):
        raise InvalidDefinitionError(
            f"Inverse side '{relation.inverse_side}' on field '{field.name}' "
            f"is not a valid identifier",
            entity_name=definition.name,
            field_name=field.name,
        )
    if isinstance(relation, OneToMany) and relation.mapped_by is None:
        raise InvalidDefinitionError(
            f"Field '{field.name}' declares a one-to-many relation. Declare a many-to-one "
            f"on '{relation.target}' instead; the one-to-many side is generated from it.",
            entity_name=definition.name,
            field_name=field.name,
        )


def resolve_target_tables(
    definition: EntityDefinition,
    lookup: Callable[[str], str | None],
) -> EntityDefinition:
    """Fill in ``target_table`` on every relation that lacks one.

    Args:
        definition: Definition to normalize
        lookup: Returns the stored table of an entity name, or None

    Returns:
        A new definition; unchanged fields are reused as is
    """
    fields: list[FieldDefinition] = []
    changed = False
    for field in definition.fields:
        relation = field.relation
        if relation is None or relation.target_table is not None:
            fields.append(field)
            continue

        if relation.target == definition.name:
            table = definition.table_name
        else:
            table = lookup(relation.target) or default_table_name(relation.target)
        resolved = relation.model_copy(update={"target_table": table})
        fields.append(field.model_copy(update={"relation": resolved}))
        changed = True

    return definition.with_fields(fields) if changed else definition
