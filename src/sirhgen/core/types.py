"""Core types for entity, field and relation definitions.

Definitions are immutable pydantic snapshots. The wire format used by the
HTTP layer is camelCase (``tableName``, ``defaultValue``, ``inverseSide``);
both the aliases and the snake_case attribute names are accepted on input.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ScalarType(StrEnum):
    """Supported scalar field types."""

    STRING = "string"
    TEXT = "text"
    NUMBER = "number"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    EMAIL = "email"
    JSON = "json"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid scalar type values."""
        return [t.value for t in cls]


class RelationKind(StrEnum):
    """Relation kinds between entities."""

    MANY_TO_ONE = "many-to-one"  # e.g., Employee -> Department
    ONE_TO_MANY = "one-to-many"  # e.g., Department -> Employees (inverse of many-to-one)
    MANY_TO_MANY = "many-to-many"  # e.g., Employee <-> Skill (junction table)
    ONE_TO_ONE = "one-to-one"  # e.g., Employee -> Badge

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid relation kind values."""
        return [k.value for k in cls]

    @property
    def inverse(self) -> RelationKind:
        """Kind of the field maintained on the target entity."""
        return _INVERSE_KINDS[self]

    @property
    def is_to_many(self) -> bool:
        return self in (RelationKind.ONE_TO_MANY, RelationKind.MANY_TO_MANY)


_INVERSE_KINDS = {
    RelationKind.MANY_TO_ONE: RelationKind.ONE_TO_MANY,
    RelationKind.ONE_TO_MANY: RelationKind.MANY_TO_ONE,
    RelationKind.MANY_TO_MANY: RelationKind.MANY_TO_MANY,
    RelationKind.ONE_TO_ONE: RelationKind.ONE_TO_ONE,
}


class OnDeleteAction(StrEnum):
    """Referential actions when a referenced row is deleted."""

    CASCADE = "cascade"
    SET_NULL = "set-null"
    RESTRICT = "restrict"
    NO_ACTION = "no-action"

    @property
    def sql(self) -> str:
        """SQL keyword form (e.g., ``SET NULL``)."""
        return self.value.replace("-", " ").upper()


_MODEL_CONFIG = ConfigDict(frozen=True, populate_by_name=True)


# === Relations (closed tagged union on ``type``) ===


class _Relation(BaseModel):
    """Members shared by every relation kind."""

    model_config = _MODEL_CONFIG

    target: str = Field(..., min_length=1, description="Target entity name")
    target_table: str | None = Field(
        default=None, alias="targetTable", description="Physical table of the target"
    )
    inverse_side: str | None = Field(
        default=None, alias="inverseSide", description="Name of the inverse field on the target"
    )
    mapped_by: str | None = Field(
        default=None,
        alias="mappedBy",
        description="Owning field on the target; set only on generated inverse fields",
    )

    @property
    def kind(self) -> RelationKind:
        return RelationKind(self.type)  # type: ignore[attr-defined]

    @property
    def is_owner(self) -> bool:
        """Whether this side holds the foreign key column or the junction table."""
        return self.mapped_by is None


class ManyToOne(_Relation):
    type: Literal["many-to-one"] = "many-to-one"
    on_delete: OnDeleteAction = Field(default=OnDeleteAction.SET_NULL, alias="onDelete")


class OneToMany(_Relation):
    type: Literal["one-to-many"] = "one-to-many"


class ManyToMany(_Relation):
    type: Literal["many-to-many"] = "many-to-many"


class OneToOne(_Relation):
    type: Literal["one-to-one"] = "one-to-one"
    on_delete: OnDeleteAction = Field(default=OnDeleteAction.SET_NULL, alias="onDelete")


RelationSpec = Annotated[
    Union[ManyToOne, OneToMany, ManyToMany, OneToOne],
    Field(discriminator="type"),
]

_RELATION_CLASSES: dict[RelationKind, type[_Relation]] = {
    RelationKind.MANY_TO_ONE: ManyToOne,
    RelationKind.ONE_TO_MANY: OneToMany,
    RelationKind.MANY_TO_MANY: ManyToMany,
    RelationKind.ONE_TO_ONE: OneToOne,
}


def make_relation(kind: RelationKind | str, **values: Any) -> _Relation:
    """Build the relation variant for ``kind``, dropping members it does not carry."""
    cls = _RELATION_CLASSES[RelationKind(kind)]
    accepted = {k: v for k, v in values.items() if k in cls.model_fields and v is not None}
    return cls(**accepted)


# === Fields and entities ===

FieldIdentity = tuple[str, ...]


class FieldDefinition(BaseModel):
    """A field on an entity: either a scalar column or a relation."""

    model_config = _MODEL_CONFIG

    name: str = Field(..., description="Field name (identifier syntax)")
    type: ScalarType | None = Field(default=None, description="Scalar type; ignored for relations")
    required: bool = Field(default=True, description="NOT NULL unless explicitly false")
    unique: bool = Field(default=False, description="Unique constraint on the column")
    default_value: str | bool | int | float | None = Field(default=None, alias="defaultValue")
    relation: RelationSpec | None = Field(default=None, description="Relation, if relational")

    @model_validator(mode="before")
    @classmethod
    def _normalize_relation(cls, data: Any) -> Any:
        # A relational field never carries a scalar type; accept snake_case kinds too
        if isinstance(data, dict) and data.get("relation") is not None:
            data = {**data, "type": None}
            relation = data["relation"]
            if isinstance(relation, dict) and isinstance(relation.get("type"), str):
                data["relation"] = {**relation, "type": relation["type"].replace("_", "-")}
        return data

    @model_validator(mode="after")
    def _require_type(self) -> FieldDefinition:
        if self.relation is None and self.type is None:
            raise ValueError(f"field '{self.name}' needs a scalar 'type' or a 'relation'")
        return self

    @property
    def is_relation(self) -> bool:
        return self.relation is not None

    @property
    def identity_key(self) -> FieldIdentity:
        """Identity used by the diff engine.

        ``(name, scalar_type)`` for scalars, ``(name, kind, target)`` for
        relations. ``required``/``unique``/``default_value`` are not part of it.
        """
        if self.relation is not None:
            return (self.name, self.relation.type, self.relation.target)
        return (self.name, str(self.type))

    @property
    def column_name(self) -> str | None:
        """Physical column backing this field on its own table, if any."""
        if self.relation is None:
            return self.name
        if self.relation.is_owner and isinstance(self.relation, (ManyToOne, OneToOne)):
            return f"{self.name}_id"
        return None


class EntityDefinition(BaseModel):
    """Declarative description of a generated entity."""

    model_config = _MODEL_CONFIG

    name: str = Field(..., description="Entity name (PascalCase)")
    table_name: str = Field(..., alias="tableName", description="Physical table name")
    fields: list[FieldDefinition] = Field(default_factory=list)

    def get_field(self, name: str) -> FieldDefinition | None:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def has_field(self, name: str) -> bool:
        return self.get_field(name) is not None

    @property
    def relation_fields(self) -> list[FieldDefinition]:
        return [f for f in self.fields if f.relation is not None]

    @property
    def owning_relations(self) -> list[FieldDefinition]:
        return [f for f in self.fields if f.relation is not None and f.relation.is_owner]

    def with_fields(self, fields: list[FieldDefinition]) -> EntityDefinition:
        """Return a copy of this definition with ``fields`` replaced."""
        return self.model_copy(update={"fields": list(fields)})

    def to_wire(self) -> dict[str, Any]:
        """Serialize with the camelCase wire aliases."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# === Output formats ===


class EntitySummary(BaseModel):
    """Summary of a generated entity (list output)."""

    name: str
    table_name: str
    field_count: int
    relation_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class IncomingRelation(BaseModel):
    """A relation declared on another entity that targets this one."""

    source_entity: str
    field_name: str
    relation_type: str
    inverse_side: str | None = None


class GeneratedEntity(BaseModel):
    """Result of ``generate``/``update``."""

    message: str
    files: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class DeletionResult(BaseModel):
    """Result of ``delete``."""

    message: str
    warnings: list[str] = Field(default_factory=list)


class ChangelogEntry(BaseModel):
    """An audit entry for a generator operation."""

    id: str
    timestamp: datetime
    operation: Literal[
        "generate_entity", "update_entity", "delete_entity", "add_inverse", "remove_field"
    ]
    entity_name: str
    field_name: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
