"""Custom exceptions for sirhgen.

Every error carries an actionable message plus a ``context`` dict so the
HTTP layer (or the CLI) can report exactly which entity or field failed.
"""

from __future__ import annotations

from typing import Any


class SirhGenError(Exception):
    """Base exception for all sirhgen errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConnectionError(SirhGenError):
    """Failed to connect to the database."""

    pass


class InvalidDefinitionError(SirhGenError):
    """Entity definition is malformed (bad names, duplicate fields, unknown type)."""

    def __init__(
        self,
        message: str,
        entity_name: str | None = None,
        field_name: str | None = None,
    ) -> None:
        super().__init__(message, {"entity_name": entity_name, "field_name": field_name})
        self.entity_name = entity_name
        self.field_name = field_name


class UnknownScalarTypeError(InvalidDefinitionError):
    """Field declares a scalar type outside the supported set."""

    VALID_TYPES = [
        "string",
        "text",
        "number",
        "integer",
        "float",
        "boolean",
        "date",
        "datetime",
        "email",
        "json",
    ]

    def __init__(self, field_type: str, field_name: str, entity_name: str | None = None) -> None:
        message = (
            f"Invalid type '{field_type}' on field '{field_name}'. "
            f"Valid types: {', '.join(self.VALID_TYPES)}"
        )
        super().__init__(message, entity_name=entity_name, field_name=field_name)
        self.context["field_type"] = field_type
        self.context["valid_types"] = self.VALID_TYPES
        self.field_type = field_type


class ConflictError(SirhGenError):
    """Entity name or table name is already taken."""

    def __init__(
        self,
        message: str,
        entity_name: str | None = None,
        table_name: str | None = None,
    ) -> None:
        super().__init__(message, {"entity_name": entity_name, "table_name": table_name})
        self.entity_name = entity_name
        self.table_name = table_name


class EntityNotFoundError(SirhGenError):
    """Entity has no stored definition."""

    def __init__(self, entity_name: str, available_entities: list[str] | None = None) -> None:
        available = available_entities or []
        if available:
            message = (
                f"Entity '{entity_name}' not found. Available entities: {', '.join(available)}"
            )
        else:
            message = f"Entity '{entity_name}' not found. No entities have been generated yet."

        super().__init__(message, {"entity_name": entity_name, "available_entities": available})
        self.entity_name = entity_name
        self.available_entities = available


class SchemaSyncError(SirhGenError):
    """DDL against the database failed.

    The operation is aborted and nothing is committed to the metadata store.
    DDL that already ran is not rolled back automatically; check
    ``table_exists`` before retrying.
    """

    def __init__(self, message: str, table_name: str | None = None) -> None:
        super().__init__(message, {"table_name": table_name})
        self.table_name = table_name


class RelationTargetUnresolved(SirhGenError):
    """Relation target entity is not registered.

    Non-fatal: instances are reported as warnings and the relation is left
    one-directional until the target is (re)created.
    """

    def __init__(self, source_entity: str, field_name: str, target_entity: str) -> None:
        message = (
            f"Relation '{source_entity}.{field_name}' targets '{target_entity}', "
            f"which is not a generated entity. The inverse side was not created."
        )
        super().__init__(
            message,
            {
                "source_entity": source_entity,
                "field_name": field_name,
                "target_entity": target_entity,
            },
        )
        self.source_entity = source_entity
        self.field_name = field_name
        self.target_entity = target_entity


class ArtifactWriteError(SirhGenError):
    """Writing or removing generated source files failed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, {"path": path})
        self.path = path
