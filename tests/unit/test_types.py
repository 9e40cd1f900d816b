"""Tests for definition types."""

import pytest
from pydantic import ValidationError

from sirhgen.core.types import (
    EntityDefinition,
    FieldDefinition,
    ManyToMany,
    ManyToOne,
    OnDeleteAction,
    OneToMany,
    OneToOne,
    RelationKind,
    ScalarType,
    make_relation,
)


class TestScalarType:
    """Tests for ScalarType enum."""

    def test_all_types_exist(self):
        """All scalar types are defined."""
        assert ScalarType.values() == [
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

    def test_unknown_type_rejected(self):
        """A type outside the fixed set fails validation."""
        with pytest.raises(ValidationError):
            FieldDefinition(name="salary", type="money")


class TestRelationKind:
    """Tests for RelationKind and OnDeleteAction."""

    @pytest.mark.parametrize(
        ("kind", "inverse"),
        [
            (RelationKind.MANY_TO_ONE, RelationKind.ONE_TO_MANY),
            (RelationKind.ONE_TO_MANY, RelationKind.MANY_TO_ONE),
            (RelationKind.MANY_TO_MANY, RelationKind.MANY_TO_MANY),
            (RelationKind.ONE_TO_ONE, RelationKind.ONE_TO_ONE),
        ],
    )
    def test_inverse(self, kind, inverse):
        assert kind.inverse == inverse

    def test_is_to_many(self):
        assert RelationKind.ONE_TO_MANY.is_to_many
        assert RelationKind.MANY_TO_MANY.is_to_many
        assert not RelationKind.MANY_TO_ONE.is_to_many
        assert not RelationKind.ONE_TO_ONE.is_to_many

    def test_on_delete_sql(self):
        assert OnDeleteAction.SET_NULL.sql == "SET NULL"
        assert OnDeleteAction.NO_ACTION.sql == "NO ACTION"
        assert OnDeleteAction.CASCADE.sql == "CASCADE"


class TestFieldDefinition:
    """Tests for FieldDefinition."""

    def test_scalar_defaults(self):
        """Fields are required and not unique unless stated."""
        field = FieldDefinition(name="name", type="string")
        assert field.required is True
        assert field.unique is False
        assert field.default_value is None
        assert field.is_relation is False

    def test_wire_aliases(self):
        """camelCase wire names are accepted."""
        field = FieldDefinition.model_validate(
            {"name": "active", "type": "boolean", "defaultValue": True}
        )
        assert field.default_value is True

    def test_relation_clears_type(self):
        """A relational field never carries a scalar type."""
        field = FieldDefinition.model_validate(
            {
                "name": "department",
                "type": "string",
                "relation": {"type": "many-to-one", "target": "Department"},
            }
        )
        assert field.type is None
        assert isinstance(field.relation, ManyToOne)

    def test_relation_variants_by_discriminator(self):
        """The relation's type selects its variant."""
        kinds = {
            "many-to-one": ManyToOne,
            "one-to-many": OneToMany,
            "many-to-many": ManyToMany,
            "one-to-one": OneToOne,
        }
        for kind, cls in kinds.items():
            field = FieldDefinition.model_validate(
                {"name": "rel", "relation": {"type": kind, "target": "Skill"}}
            )
            assert isinstance(field.relation, cls)

    def test_snake_case_kind_accepted(self):
        field = FieldDefinition.model_validate(
            {"name": "skills", "relation": {"type": "many_to_many", "target": "Skill"}}
        )
        assert isinstance(field.relation, ManyToMany)

    def test_on_delete_only_on_to_one(self):
        """Many-to-one defaults to SET NULL; many-to-many has no on_delete."""
        field = FieldDefinition(
            name="department", relation={"type": "many-to-one", "target": "Department"}
        )
        assert field.relation.on_delete == OnDeleteAction.SET_NULL
        assert not hasattr(ManyToMany(target="Skill"), "on_delete")

    def test_missing_type_and_relation(self):
        with pytest.raises(ValidationError):
            FieldDefinition(name="orphan")

    def test_identity_key(self):
        """Identity ignores modifiers."""
        a = FieldDefinition(name="name", type="string", required=True, unique=True)
        b = FieldDefinition(name="name", type="string", required=False, defaultValue="x")
        assert a.identity_key == b.identity_key == ("name", "string")

        rel = FieldDefinition(name="skills", relation={"type": "many-to-many", "target": "Skill"})
        assert rel.identity_key == ("skills", "many-to-many", "Skill")

    def test_column_name(self):
        """Only scalars and owning to-one relations map to a column."""
        assert FieldDefinition(name="name", type="string").column_name == "name"
        owner = FieldDefinition(
            name="department", relation={"type": "many-to-one", "target": "Department"}
        )
        assert owner.column_name == "department_id"
        m2m = FieldDefinition(name="skills", relation={"type": "many-to-many", "target": "Skill"})
        assert m2m.column_name is None
        inverse = FieldDefinition(
            name="employees",
            relation={"type": "one-to-many", "target": "Employee", "mappedBy": "department"},
        )
        assert inverse.column_name is None

    def test_is_owner(self):
        assert ManyToOne(target="Department").is_owner
        assert not OneToMany(target="Employee", mapped_by="department").is_owner

    def test_frozen(self):
        field = FieldDefinition(name="name", type="string")
        with pytest.raises(ValidationError):
            field.name = "other"


class TestMakeRelation:
    """Tests for make_relation."""

    def test_drops_members_the_variant_lacks(self):
        relation = make_relation("many-to-many", target="Skill", on_delete="cascade")
        assert isinstance(relation, ManyToMany)

    def test_ignores_none(self):
        relation = make_relation(RelationKind.MANY_TO_ONE, target="Department", on_delete=None)
        assert relation.on_delete == OnDeleteAction.SET_NULL


class TestEntityDefinition:
    """Tests for EntityDefinition."""

    def test_wire_round_trip(self):
        """to_wire output parses back to an equal definition."""
        definition = EntityDefinition.model_validate(
            {
                "name": "Employee",
                "tableName": "employees",
                "fields": [
                    {"name": "name", "type": "string"},
                    {"name": "active", "type": "boolean", "defaultValue": True},
                    {
                        "name": "department",
                        "required": False,
                        "relation": {
                            "type": "many-to-one",
                            "target": "Department",
                            "targetTable": "departments",
                            "onDelete": "cascade",
                        },
                    },
                ],
            }
        )
        wire = definition.to_wire()
        assert wire["tableName"] == "employees"
        assert wire["fields"][2]["relation"]["onDelete"] == "cascade"
        assert EntityDefinition.model_validate(wire) == definition

    def test_field_helpers(self):
        definition = EntityDefinition(
            name="Employee",
            table_name="employees",
            fields=[
                FieldDefinition(name="name", type="string"),
                FieldDefinition(
                    name="skills", relation={"type": "many-to-many", "target": "Skill"}
                ),
                FieldDefinition(
                    name="reports",
                    relation={"type": "one-to-many", "target": "Employee", "mappedBy": "manager"},
                ),
            ],
        )
        assert definition.has_field("skills")
        assert definition.get_field("missing") is None
        assert [f.name for f in definition.relation_fields] == ["skills", "reports"]
        assert [f.name for f in definition.owning_relations] == ["skills"]

    def test_with_fields_returns_copy(self):
        definition = EntityDefinition(name="Skill", table_name="skills")
        updated = definition.with_fields([FieldDefinition(name="label", type="string")])
        assert definition.fields == []
        assert [f.name for f in updated.fields] == ["label"]
