"""sirhgen - runtime entity generator for the SIRH back office.

Administrators declare business entities (name, table, typed fields and
relations) at runtime. sirhgen creates and migrates their tables, writes
model/DTO/service/controller source for them, and keeps the inverse side of
every relation consistent as entities are edited or deleted.

Example:
    from sirhgen import EntityGenerator

    gen = EntityGenerator("sqlite:///./sirh.db", output_dir="./generated")

    gen.generate({
        "name": "Department",
        "tableName": "departments",
        "fields": [{"name": "label", "type": "string", "required": True}],
    })
    gen.generate({
        "name": "Employee",
        "tableName": "employees",
        "fields": [
            {"name": "name", "type": "string", "required": True},
            {"name": "department", "relation": {"type": "many-to-one", "target": "Department"}},
        ],
    })

    # Department now carries the maintained inverse "employees"
    gen.get("Department").get_field("employees")
"""

from sirhgen.config import GeneratorSettings
from sirhgen.core.engine import EntityGenerator, GeneratorState
from sirhgen.core.types import (
    ChangelogEntry,
    DeletionResult,
    EntityDefinition,
    EntitySummary,
    FieldDefinition,
    GeneratedEntity,
    IncomingRelation,
    ManyToMany,
    ManyToOne,
    OnDeleteAction,
    OneToMany,
    OneToOne,
    RelationKind,
    ScalarType,
)
from sirhgen.exceptions import (
    ArtifactWriteError,
    ConflictError,
    EntityNotFoundError,
    InvalidDefinitionError,
    RelationTargetUnresolved,
    SchemaSyncError,
    SirhGenError,
    UnknownScalarTypeError,
)
from sirhgen.schema.diff import FieldDiff, diff

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "EntityGenerator",
    "GeneratorState",
    "GeneratorSettings",
    # Types
    "ScalarType",
    "RelationKind",
    "OnDeleteAction",
    "ManyToOne",
    "OneToMany",
    "ManyToMany",
    "OneToOne",
    "FieldDefinition",
    "EntityDefinition",
    "EntitySummary",
    "IncomingRelation",
    "GeneratedEntity",
    "DeletionResult",
    "ChangelogEntry",
    # Diff engine
    "FieldDiff",
    "diff",
    # Exceptions
    "SirhGenError",
    "InvalidDefinitionError",
    "UnknownScalarTypeError",
    "ConflictError",
    "EntityNotFoundError",
    "SchemaSyncError",
    "RelationTargetUnresolved",
    "ArtifactWriteError",
]
