"""Input parsing utilities for CLI commands."""

import json
from pathlib import Path
from typing import Any

from sirhgen.core.types import RelationKind


def parse_field_spec(spec: str) -> dict[str, Any]:
    """Parse a field specification string into a wire field dict.

    Formats:
        name:type[:modifier]...          scalar field
        name:relation-kind:Target[:modifier]...   relation field

    Modifiers: ``optional``, ``unique``, ``default=value`` (scalars) and
    ``inverse=name``, ``on-delete=action`` (relations).

    Examples:
        "email:email:unique" → {"name": "email", "type": "email", "unique": True}
        "active:boolean:default=true" → {"name": "active", "type": "boolean", "defaultValue": True}
        "department:many-to-one:Department:optional"
            → {"name": "department", "required": False,
               "relation": {"type": "many-to-one", "target": "Department"}}

    Raises:
        ValueError: If spec format is invalid
    """
    parts = spec.split(":")
    if len(parts) < 2 or not parts[0]:
        raise ValueError(f"Invalid field spec: '{spec}'. Expected format: name:type[:modifier]...")

    name, kind = parts[0], parts[1].replace("_", "-")
    field: dict[str, Any] = {"name": name}
    modifiers = parts[2:]

    if kind in RelationKind.values():
        if not modifiers:
            raise ValueError(f"Relation field '{name}' needs a target: {name}:{kind}:Target")
        relation: dict[str, Any] = {"type": kind, "target": modifiers[0]}
        field["relation"] = relation
        modifiers = modifiers[1:]
    else:
        field["type"] = kind
        relation = {}

    for modifier in modifiers:
        key, _, value = modifier.partition("=")
        if key == "optional" and not value:
            field["required"] = False
        elif key == "unique" and not value:
            field["unique"] = True
        elif key == "default" and value and not relation:
            # Try to parse as JSON for proper type conversion
            try:
                field["defaultValue"] = json.loads(value)
            except json.JSONDecodeError:
                field["defaultValue"] = value
        elif key == "inverse" and value and relation:
            relation["inverseSide"] = value
        elif key == "on-delete" and value and relation:
            relation["onDelete"] = value
        else:
            raise ValueError(
                f"Invalid modifier: '{modifier}'. "
                f"Supported: optional, unique, default=value, inverse=name, on-delete=action"
            )

    return field


def read_json_file(path: str) -> dict[str, Any]:
    """Read single JSON object from file.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON object

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If the file does not hold a JSON object
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with file_path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}, got {type(data).__name__}")
    return data


def build_definition(
    name: str | None,
    table_name: str | None,
    fields: list[str] | None,
    from_file: str | None,
) -> dict[str, Any]:
    """Assemble a wire entity definition from a JSON file and/or options.

    Explicit ``name``/``table_name`` override the file's values.
    """
    definition: dict[str, Any] = read_json_file(from_file) if from_file else {}
    if name:
        definition["name"] = name
    if table_name:
        definition["tableName"] = table_name
    if fields:
        definition["fields"] = [parse_field_spec(spec) for spec in fields]
    definition.setdefault("fields", [])
    if not definition.get("name"):
        raise ValueError("Entity name is required (argument or 'name' in --from-file)")
    return definition
