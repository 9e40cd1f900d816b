"""Bidirectional relation maintenance."""

from sirhgen.relations.maintainer import (
    AddField,
    RelationConsistencyMaintainer,
    RemoveField,
)

__all__ = ["RelationConsistencyMaintainer", "AddField", "RemoveField"]
