"""Artifact generator: renders source text for an entity definition.

Rendering is pure; writing the result to disk is the ArtifactWriter's job.
Relation-derived members (relationships, junction tables, ``*_id`` inputs)
are only emitted when their target is a generated or system entity.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any

from jinja2 import TemplateError

from sirhgen.artifacts.templates import ENTITY_FILES, SUPPORT_FILES, create_environment
from sirhgen.core.naming import module_name, pluralize
from sirhgen.core.types import (
    EntityDefinition,
    FieldDefinition,
    ManyToMany,
    ManyToOne,
    OneToMany,
    OneToOne,
    ScalarType,
)
from sirhgen.exceptions import ArtifactWriteError, InvalidDefinitionError
from sirhgen.storage.synchronizer import junction_columns, junction_table_name

logger = logging.getLogger(__name__)

PYTHON_TYPES = {
    ScalarType.STRING: "str",
    ScalarType.EMAIL: "str",
    ScalarType.TEXT: "str",
    ScalarType.NUMBER: "int",
    ScalarType.INTEGER: "int",
    ScalarType.FLOAT: "Decimal",
    ScalarType.BOOLEAN: "bool",
    ScalarType.DATE: "date",
    ScalarType.DATETIME: "datetime",
    ScalarType.JSON: "Any",
}

COLUMN_TYPES = {
    ScalarType.STRING: "String(255)",
    ScalarType.EMAIL: "String(255)",
    ScalarType.TEXT: "Text",
    ScalarType.NUMBER: "Integer",
    ScalarType.INTEGER: "Integer",
    ScalarType.FLOAT: "Numeric(10, 2)",
    ScalarType.BOOLEAN: "Boolean",
    ScalarType.DATE: "Date",
    ScalarType.DATETIME: "DateTime(timezone=True)",
    ScalarType.JSON: "JSON",
}


@dataclass
class RenderedEntity:
    """Rendered file set of one entity module."""

    module: str
    files: dict[str, str] = dataclass_field(default_factory=dict)


@dataclass
class _Context:
    """Template variables collected for one entity."""

    entity: dict[str, str]
    columns: list[dict[str, str]] = dataclass_field(default_factory=list)
    relationships: list[dict[str, Any]] = dataclass_field(default_factory=list)
    junctions: list[dict[str, str]] = dataclass_field(default_factory=list)
    inputs: list[dict[str, str]] = dataclass_field(default_factory=list)
    outputs: list[dict[str, str]] = dataclass_field(default_factory=list)
    many_to_many: list[dict[str, str]] = dataclass_field(default_factory=list)
    imports: list[dict[str, str]] = dataclass_field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        excluded = sorted(f"{rel['name']}_ids" for rel in self.many_to_many)
        exclude = "{" + ", ".join(f'"{name}"' for name in excluded) + "}" if excluded else "set()"
        return {
            "entity": self.entity,
            "columns": self.columns,
            "relationships": self.relationships,
            "junctions": self.junctions,
            "inputs": self.inputs,
            "outputs": self.outputs,
            "many_to_many": self.many_to_many,
            "imports": self.imports,
            "exclude": exclude,
        }


def _optional(annotation: str) -> str:
    return annotation if annotation == "Any" else f"{annotation} | None"


def _scalar_default(field: FieldDefinition) -> Any:
    if field.type == ScalarType.BOOLEAN and field.default_value is None:
        return False
    return field.default_value


class ArtifactGenerator:
    """Renders model, DTO, service and controller source for entities."""

    def __init__(self, system_entities: Mapping[str, str] | None = None) -> None:
        """Initialize the generator.

        Args:
            system_entities: Entity name -> table of entities outside the generator
        """
        self._env = create_environment()
        self._system_entities = dict(system_entities or {})

    def render(
        self,
        definition: EntityDefinition,
        lookup: Callable[[str], EntityDefinition | None],
    ) -> RenderedEntity:
        """Render the file set of one entity.

        Args:
            definition: Entity to render
            lookup: Returns the definition of a related entity, or None

        Returns:
            Module name and file name -> source text

        Raises:
            ArtifactWriteError: If a template fails to render
        """
        context = self._build_context(definition, lookup).as_dict()
        module = context["entity"]["module"]
        files: dict[str, str] = {}
        try:
            for file_name, template_name in ENTITY_FILES.items():
                files[file_name] = self._env.get_template(template_name).render(**context)
        except TemplateError as e:
            raise ArtifactWriteError(
                f"Failed to render artifacts for '{definition.name}': {e}", path=module
            ) from e
        logger.debug(f"Rendered {len(files)} files for '{definition.name}'")
        return RenderedEntity(module=module, files=files)

    def render_support(self, definitions: Iterable[EntityDefinition]) -> dict[str, str]:
        """Render the shared files at the output root.

        Args:
            definitions: Every generated entity, for the router registry
        """
        modules = sorted(
            ({"module": module_name(d.name)} for d in definitions), key=lambda m: m["module"]
        )
        try:
            return {
                file_name: self._env.get_template(template_name).render(modules=modules)
                for file_name, template_name in SUPPORT_FILES.items()
            }
        except TemplateError as e:
            raise ArtifactWriteError(f"Failed to render support files: {e}") from e

    # === Context building ===

    def _build_context(
        self,
        definition: EntityDefinition,
        lookup: Callable[[str], EntityDefinition | None],
    ) -> _Context:
        module = module_name(definition.name)
        context = _Context(
            entity={
                "name": definition.name,
                "table": definition.table_name,
                "module": module,
                "plural": pluralize(module),
                "route": definition.table_name.replace("_", "-"),
            }
        )

        for field in definition.fields:
            relation = field.relation
            if relation is None:
                self._add_scalar(context, field)
                continue

            if relation.target == definition.name:
                target: EntityDefinition | None = definition
            else:
                target = lookup(relation.target)
            is_system = relation.target in self._system_entities

            match relation:
                case ManyToOne() | OneToOne() if relation.is_owner:
                    self._add_to_one_owner(context, definition, field, relation, target, is_system)
                case ManyToMany() if relation.is_owner:
                    self._add_many_to_many_owner(
                        context, definition, field, relation, target, is_system
                    )
                case ManyToMany():
                    self._add_many_to_many_inverse(context, definition, field, relation, target)
                case OneToMany() | OneToOne():
                    self._add_to_one_inverse(context, definition, field, relation, target)
                case _:
                    logger.warning(
                        f"Unrendered relation '{definition.name}.{field.name}' ({relation.type})"
                    )
        return context

    def _add_scalar(self, context: _Context, field: FieldDefinition) -> None:
        if field.type is None:
            raise InvalidDefinitionError(
                f"Field '{field.name}' has neither a type nor a relation", field_name=field.name
            )
        python_type = PYTHON_TYPES[field.type]
        default = _scalar_default(field)

        args = [COLUMN_TYPES[field.type], f"nullable={not field.required}"]
        if field.unique:
            args.append("unique=True")
        if default is not None:
            args.append(f"default={default!r}")

        annotation = python_type if field.required else _optional(python_type)
        context.columns.append(
            {"name": field.name, "annotation": annotation, "args": ", ".join(args)}
        )

        if field.required and default is None:
            create = python_type
        else:
            create = f"{_optional(python_type)} = {default!r}"
        context.inputs.append(
            {
                "name": field.name,
                "create_annotation": create,
                "update_annotation": f"{_optional(python_type)} = None",
            }
        )
        context.outputs.append({"name": field.name, "read": annotation})

    def _add_to_one_owner(
        self,
        context: _Context,
        definition: EntityDefinition,
        field: FieldDefinition,
        relation: ManyToOne | OneToOne,
        target: EntityDefinition | None,
        is_system: bool,
    ) -> None:
        column = f"{field.name}_id"
        annotation = "int" if field.required else "int | None"

        if target is not None or is_system:
            args = [
                f'ForeignKey("{relation.target_table}.id", ondelete="{relation.on_delete.sql}")',
                f"nullable={not field.required}",
            ]
        else:
            args = ["Integer", f"nullable={not field.required}"]
        context.columns.append({"name": column, "annotation": annotation, "args": ", ".join(args)})
        context.inputs.append(
            {
                "name": column,
                "create_annotation": "int" if field.required else "int | None = None",
                "update_annotation": "int | None = None",
            }
        )
        context.outputs.append({"name": column, "read": annotation})

        if target is None:
            return
        rel_args = [f'"{target.name}"', f'foreign_keys="[{definition.name}.{column}]"']
        back = _back_populates(target, definition.name, field.name)
        if back:
            rel_args.append(f'back_populates="{back}"')
        if target.name == definition.name:
            rel_args.append(f'remote_side="{definition.name}.id"')
        context.relationships.append(
            {"name": field.name, "annotation": f"{target.name} | None", "args": rel_args}
        )

    def _add_to_one_inverse(
        self,
        context: _Context,
        definition: EntityDefinition,
        field: FieldDefinition,
        relation: OneToMany | OneToOne,
        target: EntityDefinition | None,
    ) -> None:
        mapped_by = relation.mapped_by
        if target is None or mapped_by is None:
            return
        rel_args = [
            f'"{target.name}"',
            f'back_populates="{mapped_by}"',
            f'foreign_keys="[{target.name}.{mapped_by}_id]"',
        ]
        if isinstance(relation, OneToMany):
            annotation = f"list[{target.name}]"
        else:
            annotation = f"{target.name} | None"
            rel_args.append("uselist=False")
        context.relationships.append(
            {"name": field.name, "annotation": annotation, "args": rel_args}
        )

    def _add_many_to_many_owner(
        self,
        context: _Context,
        definition: EntityDefinition,
        field: FieldDefinition,
        relation: ManyToMany,
        target: EntityDefinition | None,
        is_system: bool,
    ) -> None:
        target_table = relation.target_table
        if target_table is None:
            raise InvalidDefinitionError(
                f"Relation '{definition.name}.{field.name}' has no resolved target table",
                entity_name=definition.name,
                field_name=field.name,
            )
        if target is None and not is_system:
            return

        junction = junction_table_name(field.name, definition.table_name, target_table)
        source_column, target_column = junction_columns(definition.table_name, target_table)
        context.junctions.append(
            {
                "variable": f"{junction}_table",
                "name": junction,
                "source_column": source_column,
                "target_column": target_column,
                "target_table": target_table,
            }
        )
        if target is None:
            return

        rel_args = [f'"{target.name}"', f'secondary="{junction}"']
        back = _back_populates(target, definition.name, field.name)
        if back:
            rel_args.append(f'back_populates="{back}"')
        if target.name == definition.name:
            rel_args.append(f'primaryjoin="{definition.name}.id == {junction}.c.{source_column}"')
            rel_args.append(
                f'secondaryjoin="{definition.name}.id == {junction}.c.{target_column}"'
            )
        context.relationships.append(
            {"name": field.name, "annotation": f"list[{target.name}]", "args": rel_args}
        )

        context.inputs.append(
            {
                "name": f"{field.name}_ids",
                "create_annotation": "list[int] = Field(default_factory=list)",
                "update_annotation": "list[int] | None = None",
            }
        )
        context.many_to_many.append({"name": field.name, "target": target.name})
        if target.name != definition.name:
            context.imports.append({"module": module_name(target.name), "name": target.name})

    def _add_many_to_many_inverse(
        self,
        context: _Context,
        definition: EntityDefinition,
        field: FieldDefinition,
        relation: ManyToMany,
        target: EntityDefinition | None,
    ) -> None:
        mapped_by = relation.mapped_by
        if target is None or mapped_by is None:
            return

        # The owning side (the target) named the junction after its own table
        junction = junction_table_name(mapped_by, target.table_name, definition.table_name)
        rel_args = [
            f'"{target.name}"',
            f'secondary="{junction}"',
            f'back_populates="{mapped_by}"',
        ]
        if target.name == definition.name:
            source_column, target_column = junction_columns(
                definition.table_name, definition.table_name
            )
            rel_args.append(f'primaryjoin="{definition.name}.id == {junction}.c.{target_column}"')
            rel_args.append(
                f'secondaryjoin="{definition.name}.id == {junction}.c.{source_column}"'
            )
        context.relationships.append(
            {"name": field.name, "annotation": f"list[{target.name}]", "args": rel_args}
        )


def _back_populates(target: EntityDefinition, source_name: str, owning_field: str) -> str | None:
    """Name of the inverse field on ``target`` mapped by ``owning_field``, if present."""
    for candidate in target.fields:
        relation = candidate.relation
        if (
            relation is not None
            and relation.target == source_name
            and relation.mapped_by == owning_field
        ):
            return candidate.name
    return None
