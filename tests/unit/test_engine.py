"""Tests for the EntityGenerator orchestrator."""

from pathlib import Path

import pytest
from sqlalchemy import inspect, text

from sirhgen import EntityGenerator, GeneratorState
from sirhgen.core.types import ManyToMany, OneToMany
from sirhgen.exceptions import (
    ConflictError,
    EntityNotFoundError,
    InvalidDefinitionError,
    UnknownScalarTypeError,
)
from sirhgen.schema.validation import parse_definition

SKILL = {
    "name": "Skill",
    "tableName": "skills",
    "fields": [{"name": "label", "type": "string"}],
}

EMPLOYEE = {
    "name": "Employee",
    "tableName": "employees",
    "fields": [
        {"name": "name", "type": "string"},
        {
            "name": "skills",
            "required": False,
            "relation": {"type": "many-to-many", "target": "Skill"},
        },
    ],
}

DEPARTMENT = {
    "name": "Department",
    "tableName": "departments",
    "fields": [
        {"name": "label", "type": "string", "unique": True},
        {"name": "budget", "type": "float", "required": False, "defaultValue": 1000},
        {"name": "open", "type": "boolean", "defaultValue": True},
    ],
}


def columns(generator: EntityGenerator, table: str) -> list[str]:
    return [c["name"] for c in inspect(generator._connection.engine).get_columns(table)]


class TestGenerate:
    """Tests for generate()."""

    def test_round_trip(self, generator: EntityGenerator):
        """get() returns exactly what was generated."""
        generator.generate(DEPARTMENT)
        assert generator.get("Department") == parse_definition(DEPARTMENT)

    def test_create_with_relation(self, generator: EntityGenerator):
        """Employee <-> Skill: columns, junction table and maintained inverse."""
        generator.generate(SKILL)
        result = generator.generate(EMPLOYEE)

        assert result.warnings == []
        assert columns(generator, "employees") == ["id", "name", "created_at", "updated_at"]
        assert generator.table_exists("skills_employees_skills")
        assert columns(generator, "skills_employees_skills") == ["employee_id", "skill_id"]

        inverse = generator.get("Skill").get_field("employees")
        assert inverse is not None
        assert isinstance(inverse.relation, ManyToMany)
        assert inverse.relation.target == "Employee"
        assert inverse.relation.mapped_by == "skills"

    def test_multi_word_source_inverse_name(self, generator: EntityGenerator):
        generator.generate(DEPARTMENT)
        generator.generate(
            {
                "name": "JobTitle",
                "fields": [
                    {"name": "label", "type": "string"},
                    {
                        "name": "department",
                        "required": False,
                        "relation": {"type": "many-to-one", "target": "Department"},
                    },
                ],
            }
        )
        department = generator.get("Department")
        assert department.has_field("jobtitles")
        assert department.get_field("jobtitles").relation.mapped_by == "department"
        assert generator.get("JobTitle").table_name == "job_titles"

    def test_writes_artifacts(self, generator: EntityGenerator, output_dir: Path):
        generator.generate(SKILL)
        result = generator.generate(EMPLOYEE)

        assert (output_dir / "employee" / "models.py").exists()
        assert str(output_dir / "employee" / "models.py") in result.files
        # Skill gained an inverse, so its module was re-rendered
        assert str(output_dir / "skill" / "models.py") in result.files
        assert "employees: Mapped[list[Employee]]" in (
            output_dir / "skill" / "models.py"
        ).read_text()
        routers = (output_dir / "routers.py").read_text()
        assert "employee_router" in routers and "skill_router" in routers
        assert not generator.is_generating

    def test_written_artifacts_compile(self, generator: EntityGenerator, output_dir: Path):
        generator.generate(SKILL)
        generator.generate(EMPLOYEE)

        sources = sorted(output_dir.rglob("*.py"))
        assert output_dir / "skill" / "dto.py" in sources
        for path in sources:
            compile(path.read_text(), str(path), "exec")

    def test_unresolved_target_warns(self, generator: EntityGenerator):
        """A relation to an unknown entity still generates, with warnings."""
        result = generator.generate(EMPLOYEE)
        assert any("Skill" in w for w in result.warnings)
        assert generator.table_exists("employees")
        assert not generator.table_exists("skills_employees_skills")
        assert generator.get("Employee").get_field("skills").relation.target_table == "skills"

    def test_system_target_gets_foreign_key_only(self, generator: EntityGenerator):
        with generator._connection.engine.begin() as conn:
            conn.execute(text("CREATE TABLE users (id INTEGER PRIMARY KEY)"))

        result = generator.generate(
            {
                "name": "LeaveRequest",
                "fields": [
                    {"name": "reason", "type": "text"},
                    {"name": "requester", "relation": {"type": "many-to-one", "target": "User"}},
                ],
            }
        )
        assert any("system entity" in w for w in result.warnings)
        fks = inspect(generator._connection.engine).get_foreign_keys("leave_requests")
        assert fks[0]["referred_table"] == "users"

    def test_self_reference(self, generator: EntityGenerator):
        generator.generate(
            {
                "name": "Employee",
                "tableName": "employees",
                "fields": [
                    {"name": "name", "type": "string"},
                    {
                        "name": "manager",
                        "required": False,
                        "relation": {
                            "type": "many-to-one",
                            "target": "Employee",
                            "inverseSide": "reports",
                        },
                    },
                ],
            }
        )
        stored = generator.get("Employee")
        assert [f.name for f in stored.fields] == ["name", "manager", "reports"]
        assert isinstance(stored.get_field("reports").relation, OneToMany)
        assert "manager_id" in columns(generator, "employees")

    def test_duplicate_field_names_rejected_without_side_effects(
        self, generator: EntityGenerator, output_dir: Path
    ):
        definition = {
            "name": "Skill",
            "tableName": "skills",
            "fields": [
                {"name": "label", "type": "string"},
                {"name": "label", "type": "text"},
            ],
        }
        with pytest.raises(InvalidDefinitionError) as exc_info:
            generator.generate(definition)

        assert exc_info.value.field_name == "label"
        assert not generator.table_exists("skills")
        assert generator.list() == []
        assert not (output_dir / "skill").exists()
        assert generator.get_changelog() == []
        assert generator.state == GeneratorState.FAILED
        assert not generator.is_generating

    def test_unknown_type_rejected(self, generator: EntityGenerator):
        with pytest.raises(UnknownScalarTypeError):
            generator.generate(
                {"name": "Skill", "fields": [{"name": "level", "type": "money"}]}
            )
        assert not generator.table_exists("skills")

    def test_duplicate_name_conflicts(self, generator: EntityGenerator):
        generator.generate(SKILL)
        with pytest.raises(ConflictError):
            generator.generate({**SKILL, "tableName": "other_skills"})
        assert not generator.table_exists("other_skills")

    def test_duplicate_table_conflicts(self, generator: EntityGenerator):
        generator.generate(SKILL)
        with pytest.raises(ConflictError, match="skills"):
            generator.generate({"name": "Competency", "tableName": "skills", "fields": []})

    def test_existing_physical_table_conflicts(self, generator: EntityGenerator):
        with generator._connection.engine.begin() as conn:
            conn.execute(text("CREATE TABLE skills (id INTEGER PRIMARY KEY)"))
        with pytest.raises(ConflictError):
            generator.generate(SKILL)

    def test_system_entity_name_conflicts(self, generator: EntityGenerator):
        with pytest.raises(ConflictError):
            generator.generate({"name": "User", "tableName": "people", "fields": []})
        with pytest.raises(ConflictError):
            generator.generate({"name": "Person", "tableName": "users", "fields": []})

    def test_state_returns_to_idle(self, generator: EntityGenerator):
        assert generator.state == GeneratorState.IDLE
        generator.generate(SKILL)
        assert generator.state == GeneratorState.IDLE

    def test_failed_state_recovers(self, generator: EntityGenerator):
        with pytest.raises(ConflictError):
            generator.generate({"name": "User", "fields": []})
        assert generator.state == GeneratorState.FAILED

        generator.generate(SKILL)
        assert generator.state == GeneratorState.IDLE

    def test_gate_held_while_committing(self, generator: EntityGenerator, monkeypatch):
        seen = []
        original_put = generator._store.put

        def spy(definition):
            seen.append((generator.is_generating, generator.state))
            original_put(definition)

        monkeypatch.setattr(generator._store, "put", spy)
        generator.generate(SKILL)
        assert seen == [(True, GeneratorState.COMMITTING)]
        assert not generator.is_generating

    def test_changelog(self, generator: EntityGenerator):
        generator.generate(SKILL)
        generator.generate(EMPLOYEE)
        operations = {(e.operation, e.entity_name) for e in generator.get_changelog()}
        assert ("generate_entity", "Skill") in operations
        assert ("generate_entity", "Employee") in operations
        assert ("add_inverse", "Skill") in operations


class TestUpdate:
    """Tests for update()."""

    def test_required_only_change_is_a_no_op_alter(self, generator: EntityGenerator):
        """Changing only modifiers leaves the table untouched."""
        generator.generate(DEPARTMENT)
        before = columns(generator, "departments")

        changed = {
            **DEPARTMENT,
            "fields": [{**f, "required": False} for f in DEPARTMENT["fields"]],
        }
        result = generator.update("Department", changed)

        assert "0 field(s) added, 0 removed" in result.message
        assert columns(generator, "departments") == before
        assert generator.get("Department").get_field("label").required is False

    def test_add_and_remove_scalar(self, generator: EntityGenerator):
        generator.generate(DEPARTMENT)
        fields = [f for f in DEPARTMENT["fields"] if f["name"] != "open"]
        fields.append({"name": "code", "type": "string", "required": False})
        generator.update("Department", {**DEPARTMENT, "fields": fields})

        cols = columns(generator, "departments")
        assert "code" in cols
        assert "open" not in cols
        assert [f.name for f in generator.get("Department").fields] == ["label", "budget", "code"]

    def test_retry_after_partial_alter(self, generator: EntityGenerator):
        """A column left behind by an interrupted update does not block the retry."""
        generator.generate(SKILL)
        with generator._connection.engine.begin() as conn:
            conn.execute(text("ALTER TABLE skills ADD COLUMN level INTEGER"))

        level = {"name": "level", "type": "integer", "required": False}
        generator.update("Skill", {**SKILL, "fields": [*SKILL["fields"], level]})

        assert columns(generator, "skills").count("level") == 1
        assert generator.get("Skill").has_field("level")
        assert generator.state == GeneratorState.IDLE

    def test_add_relation_adds_inverse(self, generator: EntityGenerator):
        generator.generate(SKILL)
        generator.generate({**EMPLOYEE, "fields": EMPLOYEE["fields"][:1]})
        assert not generator.get("Skill").has_field("employees")

        generator.update("Employee", EMPLOYEE)
        assert generator.get("Skill").has_field("employees")
        assert generator.table_exists("skills_employees_skills")

    def test_remove_relation_removes_inverse_and_junction(self, generator: EntityGenerator):
        generator.generate(SKILL)
        generator.generate(EMPLOYEE)

        generator.update("Employee", {**EMPLOYEE, "fields": EMPLOYEE["fields"][:1]})
        assert not generator.get("Skill").has_field("employees")
        assert not generator.table_exists("skills_employees_skills")

    def test_inverse_fields_carried_forward(self, generator: EntityGenerator):
        """Updating the target without its inverse field keeps the inverse."""
        generator.generate(SKILL)
        generator.generate(EMPLOYEE)

        generator.update(
            "Skill",
            {
                **SKILL,
                "fields": [
                    *SKILL["fields"],
                    {"name": "level", "type": "integer", "required": False},
                ],
            },
        )
        skill = generator.get("Skill")
        assert [f.name for f in skill.fields] == ["label", "level", "employees"]

    def test_rename_regenerates(self, generator: EntityGenerator, output_dir: Path):
        generator.generate(SKILL)
        generator.update("Skill", {**SKILL, "name": "Competency", "tableName": "competencies"})

        assert not generator.table_exists("skills")
        assert generator.table_exists("competencies")
        assert not (output_dir / "skill").exists()
        assert (output_dir / "competency" / "models.py").exists()
        with pytest.raises(EntityNotFoundError):
            generator.get("Skill")

    def test_rename_to_taken_name_conflicts(self, generator: EntityGenerator):
        generator.generate(SKILL)
        generator.generate(DEPARTMENT)
        with pytest.raises(ConflictError):
            generator.update("Skill", {**SKILL, "name": "Department"})
        assert generator.table_exists("skills")

    def test_update_unknown_entity(self, generator: EntityGenerator):
        with pytest.raises(EntityNotFoundError):
            generator.update("Ghost", SKILL)


class TestDelete:
    """Tests for delete()."""

    def test_delete_cleans_up_graph(self, generator: EntityGenerator, output_dir: Path):
        """Deleting Skill strips Employee.skills and drops the junction."""
        generator.generate(SKILL)
        generator.generate(EMPLOYEE)

        generator.delete("Skill")

        assert not generator.get("Employee").has_field("skills")
        assert not generator.table_exists("skills")
        assert not generator.table_exists("skills_employees_skills")
        assert not (output_dir / "skill").exists()
        assert "skills: Mapped" not in (output_dir / "employee" / "models.py").read_text()
        assert [s.name for s in generator.list()] == ["Employee"]

    def test_delete_owner_removes_inverse(self, generator: EntityGenerator):
        generator.generate(SKILL)
        generator.generate(EMPLOYEE)

        generator.delete("Employee")

        assert not generator.get("Skill").has_field("employees")
        assert not generator.table_exists("employees")
        assert not generator.table_exists("skills_employees_skills")
        assert generator.table_exists("skills")

    def test_delete_drops_foreign_key_columns_elsewhere(self, generator: EntityGenerator):
        generator.generate(DEPARTMENT)
        generator.generate(
            {
                "name": "Employee",
                "tableName": "employees",
                "fields": [
                    {"name": "name", "type": "string"},
                    {
                        "name": "department",
                        "required": False,
                        "relation": {"type": "many-to-one", "target": "Department"},
                    },
                ],
            }
        )
        assert "department_id" in columns(generator, "employees")

        generator.delete("Department")
        assert "department_id" not in columns(generator, "employees")

    def test_delete_keep_table(self, generator: EntityGenerator):
        generator.generate(SKILL)
        result = generator.delete("Skill", drop_table=False)
        assert "kept" in result.message
        assert generator.table_exists("skills")
        assert generator.list() == []

    def test_delete_unknown_entity(self, generator: EntityGenerator):
        with pytest.raises(EntityNotFoundError):
            generator.delete("Ghost")


class TestQueries:
    """Tests for read operations."""

    def test_get_unknown_lists_available(self, generator: EntityGenerator):
        generator.generate(SKILL)
        with pytest.raises(EntityNotFoundError, match="Skill"):
            generator.get("Ghost")

    def test_list(self, generator: EntityGenerator):
        generator.generate(SKILL)
        generator.generate(EMPLOYEE)
        summaries = generator.list()
        assert [s.name for s in summaries] == ["Employee", "Skill"]
        assert summaries[1].relation_count == 1

    def test_list_incoming_relations(self, generator: EntityGenerator):
        generator.generate(
            {
                "name": "Badge",
                "tableName": "badges",
                "fields": [{"name": "employee", "type": "string", "required": False}],
            }
        )
        # The scalar "employee" blocks the one-to-one inverse
        generator.generate(
            {
                "name": "Employee",
                "tableName": "employees",
                "fields": [
                    {
                        "name": "badge",
                        "required": False,
                        "relation": {"type": "one-to-one", "target": "Badge"},
                    }
                ],
            }
        )
        incoming = generator.list_incoming_relations("Badge")
        assert [(r.source_entity, r.field_name) for r in incoming] == [("Employee", "badge")]

    def test_context_manager(self, sqlite_url: str, output_dir: Path):
        with EntityGenerator(sqlite_url, output_dir=output_dir) as gen:
            gen.generate(SKILL)
        with EntityGenerator(sqlite_url, output_dir=output_dir) as gen:
            assert gen.get("Skill").table_name == "skills"
