"""Tests for definition parsing and validation."""

import pytest

from sirhgen.core.types import EntityDefinition, FieldDefinition
from sirhgen.exceptions import InvalidDefinitionError, UnknownScalarTypeError
from sirhgen.schema.validation import (
    parse_definition,
    resolve_target_tables,
    validate_definition,
)


def _definition(*fields: dict, name: str = "Employee", table: str = "employees"):
    return parse_definition({"name": name, "tableName": table, "fields": list(fields)})


class TestParseDefinition:
    """Tests for parse_definition."""

    def test_derives_table_name(self):
        """A missing tableName is derived from the entity name."""
        definition = parse_definition({"name": "JobCategory", "fields": []})
        assert definition.table_name == "job_categories"

    def test_passes_definitions_through(self):
        definition = EntityDefinition(name="Skill", table_name="skills")
        assert parse_definition(definition) is definition

    def test_unknown_scalar_type(self):
        """An unsupported type names the field and lists valid types."""
        with pytest.raises(UnknownScalarTypeError) as exc_info:
            _definition({"name": "salary", "type": "money"})
        assert exc_info.value.field_name == "salary"
        assert exc_info.value.field_type == "money"
        assert "string" in exc_info.value.context["valid_types"]

    def test_missing_name(self):
        with pytest.raises(InvalidDefinitionError):
            parse_definition({"tableName": "employees", "fields": []})

    def test_not_an_object(self):
        with pytest.raises(InvalidDefinitionError):
            parse_definition(["Employee"])  # type: ignore[arg-type]


class TestValidateDefinition:
    """Tests for validate_definition."""

    def test_valid_definition(self):
        definition = _definition(
            {"name": "name", "type": "string"},
            {"name": "department", "relation": {"type": "many-to-one", "target": "Department"}},
            {"name": "skills", "relation": {"type": "many-to-many", "target": "Skill"}},
        )
        validate_definition(definition)

    def test_duplicate_field_names(self):
        """Duplicate names are rejected and the error names the field."""
        definition = _definition(
            {"name": "email", "type": "email"},
            {"name": "email", "type": "string"},
        )
        with pytest.raises(InvalidDefinitionError, match="Duplicate field name 'email'") as e:
            validate_definition(definition)
        assert e.value.field_name == "email"

    @pytest.mark.parametrize("name", ["employee", "Job Title", "2Fast", "Job_Title"])
    def test_entity_name_must_be_pascal_case(self, name):
        with pytest.raises(InvalidDefinitionError):
            validate_definition(_definition(name=name))

    @pytest.mark.parametrize("table", ["Employees", "job-titles", "1st", "a" * 64])
    def test_invalid_table_name(self, table):
        with pytest.raises(InvalidDefinitionError):
            validate_definition(_definition(table=table))

    @pytest.mark.parametrize("field", ["id", "created_at", "updated_at"])
    def test_reserved_field_names(self, field):
        with pytest.raises(InvalidDefinitionError, match="reserved"):
            validate_definition(_definition({"name": field, "type": "string"}))

    def test_invalid_field_name(self):
        with pytest.raises(InvalidDefinitionError):
            validate_definition(_definition({"name": "first name", "type": "string"}))

    def test_column_collision(self):
        """A scalar and a relation mapping to the same column are rejected."""
        definition = _definition(
            {"name": "department_id", "type": "integer"},
            {"name": "department", "relation": {"type": "many-to-one", "target": "Department"}},
        )
        with pytest.raises(InvalidDefinitionError, match="department_id"):
            validate_definition(definition)

    def test_relation_target_must_be_entity_name(self):
        definition = _definition(
            {"name": "department", "relation": {"type": "many-to-one", "target": "departments"}}
        )
        with pytest.raises(InvalidDefinitionError, match="not an entity name"):
            validate_definition(definition)

    def test_invalid_inverse_side(self):
        definition = _definition(
            {
                "name": "department",
                "relation": {
                    "type": "many-to-one",
                    "target": "Department",
                    "inverseSide": "team members",
                },
            }
        )
        with pytest.raises(InvalidDefinitionError):
            validate_definition(definition)

    def test_user_declared_one_to_many_rejected(self):
        """One-to-many is only valid as a generated inverse."""
        definition = _definition(
            {"name": "reports", "relation": {"type": "one-to-many", "target": "Employee"}}
        )
        with pytest.raises(InvalidDefinitionError, match="many-to-one"):
            validate_definition(definition)

    def test_generated_one_to_many_accepted(self):
        definition = _definition(
            {
                "name": "reports",
                "required": False,
                "relation": {"type": "one-to-many", "target": "Employee", "mappedBy": "manager"},
            }
        )
        validate_definition(definition)


class TestResolveTargetTables:
    """Tests for resolve_target_tables."""

    def test_uses_lookup_then_default(self):
        definition = _definition(
            {"name": "department", "relation": {"type": "many-to-one", "target": "Department"}},
            {"name": "skills", "relation": {"type": "many-to-many", "target": "Skill"}},
        )
        resolved = resolve_target_tables(definition, {"Department": "org_units"}.get)
        assert resolved.get_field("department").relation.target_table == "org_units"
        assert resolved.get_field("skills").relation.target_table == "skills"

    def test_self_reference_uses_own_table(self):
        definition = _definition(
            {"name": "manager", "relation": {"type": "many-to-one", "target": "Employee"}},
            table="staff",
        )
        resolved = resolve_target_tables(definition, lambda _: None)
        assert resolved.get_field("manager").relation.target_table == "staff"

    def test_explicit_target_table_kept(self):
        definition = _definition(
            {
                "name": "owner",
                "relation": {"type": "many-to-one", "target": "User", "targetTable": "app_users"},
            }
        )
        resolved = resolve_target_tables(definition, {"User": "users"}.get)
        assert resolved is definition
        assert resolved.get_field("owner").relation.target_table == "app_users"

    def test_scalars_untouched(self):
        definition = _definition({"name": "name", "type": "string"})
        assert resolve_target_tables(definition, lambda _: None) is definition


def test_validates_constructed_definitions():
    """Definitions built in Python validate like their wire form."""
    field = FieldDefinition(name="email", type="email", unique=True)
    definition = EntityDefinition(name="Contact", table_name="contacts", fields=[field])
    validate_definition(definition)
