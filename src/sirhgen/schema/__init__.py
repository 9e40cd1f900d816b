"""Entity metadata: persistence, validation and diffing."""

from sirhgen.schema.diff import FieldDiff, diff
from sirhgen.schema.models import EntityRecord, FieldRecord, SchemaChangelog
from sirhgen.schema.store import EntityMetadataStore

__all__ = [
    "EntityMetadataStore",
    "EntityRecord",
    "FieldRecord",
    "SchemaChangelog",
    "FieldDiff",
    "diff",
]
