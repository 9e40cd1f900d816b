"""Core components for sirhgen."""

from sirhgen.core.connection import DatabaseConnection
from sirhgen.core.types import (
    EntityDefinition,
    FieldDefinition,
    OnDeleteAction,
    RelationKind,
    ScalarType,
)

__all__ = [
    "DatabaseConnection",
    "ScalarType",
    "RelationKind",
    "OnDeleteAction",
    "FieldDefinition",
    "EntityDefinition",
]
