"""Schema synchronizer for generated entities.

Turns entity definitions into DDL: one table per entity, foreign-key
columns for owning to-one relations, junction tables for owning
many-to-many relations. Inverse fields (``mapped_by`` set) never produce DDL.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
    inspect,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError

from sirhgen.core.naming import singularize
from sirhgen.core.types import (
    FieldDefinition,
    ManyToMany,
    ManyToOne,
    OneToOne,
    ScalarType,
)
from sirhgen.exceptions import ConflictError, SchemaSyncError

if TYPE_CHECKING:
    from sqlalchemy import Connection
    from sqlalchemy.types import TypeEngine

    from sirhgen.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)


# Mapping from scalar types to SQLAlchemy column types (json is dialect specific)
SCALAR_TYPE_MAP = {
    ScalarType.STRING: lambda: String(255),
    ScalarType.EMAIL: lambda: String(255),
    ScalarType.TEXT: lambda: Text(),
    ScalarType.NUMBER: lambda: Integer(),
    ScalarType.INTEGER: lambda: Integer(),
    ScalarType.FLOAT: lambda: Numeric(10, 2),
    ScalarType.BOOLEAN: lambda: Boolean(),
    ScalarType.DATE: lambda: Date(),
    ScalarType.DATETIME: lambda: DateTime(timezone=True),
}

_NUMERIC_TYPES = (ScalarType.NUMBER, ScalarType.INTEGER, ScalarType.FLOAT)


def junction_table_name(field_name: str, source_table: str, target_table: str) -> str:
    """Deterministic junction table name (e.g., skills_employees_skills)."""
    return f"{field_name}_{source_table}_{target_table}"


def junction_columns(source_table: str, target_table: str) -> tuple[str, str]:
    """Column names of a junction table, source side first.

    A self-referencing junction prefixes the target column with ``related_``
    so the two columns stay distinct.
    """
    source_column = f"{singularize(source_table)}_id"
    target_column = f"{singularize(target_table)}_id"
    if source_column == target_column:
        target_column = f"related_{target_column}"
    return source_column, target_column


def foreign_key_name(table_name: str, column_name: str) -> str:
    return f"fk_{table_name}_{column_name}"


def _owning_many_to_many(fields: Iterable[FieldDefinition]) -> list[FieldDefinition]:
    return [
        f for f in fields if isinstance(f.relation, ManyToMany) and f.relation.is_owner
    ]


def _owning_to_one(field: FieldDefinition) -> bool:
    return isinstance(field.relation, (ManyToOne, OneToOne)) and field.relation.is_owner


def _target_table(field: FieldDefinition) -> str:
    relation = field.relation
    if relation is None or relation.target_table is None:
        raise SchemaSyncError(f"Relation '{field.name}' has no resolved target table")
    return relation.target_table


def _scalar_type(field: FieldDefinition) -> ScalarType:
    if field.type is None:
        raise SchemaSyncError(f"Field '{field.name}' has neither a type nor a relation")
    return field.type


class SchemaSynchronizer:
    """Applies and reverses entity DDL against the database.

    DDL runs in ``engine.begin()`` scopes. PostgreSQL rolls a failed scope
    back; SQLite commits CREATE/DROP as they run. Neither dialect rolls back
    DDL from an earlier scope, so callers consult ``table_exists`` before
    retrying a failed operation.
    """

    def __init__(self, connection: DatabaseConnection) -> None:
        """Initialize the synchronizer.

        Args:
            connection: Database connection to use
        """
        self._connection = connection

    @property
    def _is_postgresql(self) -> bool:
        return self._connection.is_postgresql

    # === Introspection ===

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists.

        Args:
            table_name: The table name to check

        Returns:
            True if table exists
        """
        with self._connection.engine.connect() as conn:
            return inspect(conn).has_table(table_name)

    def column_names(self, table_name: str) -> list[str]:
        """Physical column names of a table, in table order."""
        with self._connection.engine.connect() as conn:
            return [c["name"] for c in inspect(conn).get_columns(table_name)]

    def junction_tables_for(self, table_name: str, fields: Iterable[FieldDefinition]) -> list[str]:
        """Junction tables owned by an entity's many-to-many fields."""
        return [
            junction_table_name(f.name, table_name, _target_table(f))
            for f in _owning_many_to_many(fields)
        ]

    # === Column building ===

    def column_type(self, scalar_type: ScalarType) -> TypeEngine[Any]:
        """SQLAlchemy column type for a scalar type."""
        if scalar_type == ScalarType.JSON:
            return JSONB() if self._is_postgresql else JSON()
        return SCALAR_TYPE_MAP[scalar_type]()

    def _default_sql(self, field: FieldDefinition) -> str | None:
        """SQL literal for the column default, if the field has one."""
        value = field.default_value
        if field.type == ScalarType.BOOLEAN:
            if value is None:
                value = False
            elif isinstance(value, str):
                value = value.strip().lower() in ("true", "1", "yes")
        if value is None:
            return None

        if isinstance(value, bool):
            if self._is_postgresql:
                return "TRUE" if value else "FALSE"
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return str(value)
        if field.type in _NUMERIC_TYPES:
            try:
                float(value)
                return value
            except ValueError:
                pass
        escaped = str(value).replace("'", "''")
        return f"'{escaped}'"

    def _scalar_column(self, field: FieldDefinition) -> Column[Any]:
        default = self._default_sql(field)
        return Column(
            field.name,
            self.column_type(_scalar_type(field)),
            nullable=not field.required,
            unique=field.unique or None,
            server_default=text(default) if default is not None else None,
        )

    # === Table lifecycle ===

    def create_table(
        self,
        table_name: str,
        fields: list[FieldDefinition],
        if_not_exists: bool = False,
    ) -> list[str]:
        """Create the table for an entity, its foreign keys and junction tables.

        Args:
            table_name: Physical table name
            fields: Field definitions; relation targets must be resolved
            if_not_exists: Treat an existing table as success (no-op)

        Returns:
            Warnings for foreign keys or junction tables that could not be
            created because their target table does not exist yet

        Raises:
            ConflictError: If the table exists and if_not_exists=False
            SchemaSyncError: If the DDL fails
        """
        if self.table_exists(table_name):
            if if_not_exists:
                logger.info(f"Table '{table_name}' already exists, skipping create")
                return []
            raise ConflictError(f"Table '{table_name}' already exists", table_name=table_name)

        warnings: list[str] = []
        metadata = MetaData()
        columns: list[Column[Any]] = [Column("id", Integer, primary_key=True, autoincrement=True)]
        foreign_keys: list[tuple[str, str, str]] = []  # (column, target_table, on_delete)

        for field in fields:
            relation = field.relation
            if relation is None:
                columns.append(self._scalar_column(field))
            elif isinstance(relation, (ManyToOne, OneToOne)) and relation.is_owner:
                column = f"{field.name}_id"
                columns.append(Column(column, Integer, nullable=not field.required))
                target = _target_table(field)
                if target == table_name or self.table_exists(target):
                    foreign_keys.append((column, target, relation.on_delete.sql))
                else:
                    warnings.append(
                        f"Target table '{target}' of relation '{table_name}.{field.name}' "
                        f"does not exist; column '{column}' created without a foreign key"
                    )

        columns.append(
            Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now())
        )
        columns.append(
            Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now())
        )

        constraints: list[ForeignKeyConstraint] = []
        if not self._is_postgresql:
            # SQLite cannot add constraints after creation; declare them inline
            constraints = [
                ForeignKeyConstraint(
                    [column],
                    [f"{target}.id"],
                    name=foreign_key_name(table_name, column),
                    ondelete=on_delete,
                )
                for column, target, on_delete in foreign_keys
            ]

        table = Table(table_name, metadata, *columns, *constraints)
        for _, target, _ in foreign_keys:
            if target not in metadata.tables:
                Table(target, metadata, Column("id", Integer, primary_key=True))

        try:
            with self._connection.ddl_scope() as conn:
                table.create(conn)
                if self._is_postgresql:
                    for column, target, on_delete in foreign_keys:
                        self._add_foreign_key_constraint(
                            conn, table_name, column, target, on_delete
                        )
                warnings.extend(self._create_junctions(conn, table_name, fields))
        except SQLAlchemyError as e:
            logger.error(f"Failed to create table '{table_name}': {e}")
            raise SchemaSyncError(
                f"Failed to create table '{table_name}': {e}", table_name=table_name
            ) from e

        logger.info(f"Created table '{table_name}' ({len(columns)} columns)")
        for warning in warnings:
            logger.warning(warning)
        return warnings

    def alter_table(
        self,
        table_name: str,
        added: list[FieldDefinition],
        removed: list[FieldDefinition],
    ) -> list[str]:
        """Apply an add/drop migration to an existing table.

        Removed many-to-many fields are left alone here; their junction
        tables are dropped by relation cleanup.

        Args:
            table_name: Physical table name
            added: Fields to add columns, foreign keys or junctions for
            removed: Fields whose columns are dropped

        Returns:
            Warnings for foreign keys or junctions skipped for missing targets

        Raises:
            SchemaSyncError: If the DDL fails
        """
        if not added and not removed:
            logger.debug(f"No schema changes for '{table_name}'")
            return []

        drop_columns = [
            f.column_name
            for f in removed
            if f.relation is None or _owning_to_one(f)
        ]
        existing = set(self.column_names(table_name))
        drop_columns = [c for c in drop_columns if c is not None and c in existing]
        present = existing - set(drop_columns)

        warnings: list[str] = []
        try:
            if drop_columns:
                self._drop_columns(table_name, drop_columns)

            with self._connection.ddl_scope() as conn:
                for field in added:
                    column = field.column_name
                    if column is not None and column in present:
                        logger.info(f"Column '{table_name}.{column}' already exists, skipping add")
                        continue
                    relation = field.relation
                    if relation is None:
                        self._add_scalar_column(conn, table_name, field)
                    elif isinstance(relation, (ManyToOne, OneToOne)) and relation.is_owner:
                        warning = self._add_foreign_key_column(
                            conn, table_name, field, relation
                        )
                        if warning:
                            warnings.append(warning)
                warnings.extend(self._create_junctions(conn, table_name, added))
        except SQLAlchemyError as e:
            logger.error(f"Failed to alter table '{table_name}': {e}")
            raise SchemaSyncError(
                f"Failed to alter table '{table_name}': {e}", table_name=table_name
            ) from e

        logger.info(
            f"Altered table '{table_name}': +{len(added)} field(s), -{len(removed)} field(s)"
        )
        for warning in warnings:
            logger.warning(warning)
        return warnings

    def drop_table(self, table_name: str, junction_tables: Iterable[str] = ()) -> None:
        """Drop junction tables first, then the table itself.

        Both use DROP IF EXISTS, so a repeated or half-applied drop is safe.

        Raises:
            SchemaSyncError: If the DDL fails
        """
        try:
            with self._connection.ddl_scope() as conn:
                for junction in junction_tables:
                    self._drop_table(conn, junction)
                self._drop_table(conn, table_name)
        except SQLAlchemyError as e:
            logger.error(f"Failed to drop table '{table_name}': {e}")
            raise SchemaSyncError(
                f"Failed to drop table '{table_name}': {e}", table_name=table_name
            ) from e
        logger.info(f"Dropped table '{table_name}'")

    def drop_junction_table(self, junction_table: str) -> None:
        """Drop a single junction table if it exists."""
        try:
            with self._connection.ddl_scope() as conn:
                self._drop_table(conn, junction_table)
        except SQLAlchemyError as e:
            raise SchemaSyncError(
                f"Failed to drop junction table '{junction_table}': {e}",
                table_name=junction_table,
            ) from e
        logger.info(f"Dropped junction table '{junction_table}'")

    # === DDL helpers ===

    def _drop_table(self, conn: Connection, table_name: str) -> None:
        if self._is_postgresql:
            conn.execute(text(f'DROP TABLE IF EXISTS "{table_name}" CASCADE'))
        else:
            # SQLite doesn't support CASCADE
            conn.execute(text(f'DROP TABLE IF EXISTS "{table_name}"'))

    def _add_foreign_key_constraint(
        self,
        conn: Connection,
        table_name: str,
        column: str,
        target_table: str,
        on_delete: str,
    ) -> None:
        constraint = foreign_key_name(table_name, column)
        conn.execute(
            text(
                f"""
            ALTER TABLE "{table_name}"
            ADD CONSTRAINT "{constraint}"
            FOREIGN KEY ("{column}")
            REFERENCES "{target_table}" ("id")
            ON DELETE {on_delete}
        """
            )
        )

    def _add_scalar_column(self, conn: Connection, table_name: str, field: FieldDefinition) -> None:
        column_type = self.column_type(_scalar_type(field)).compile(dialect=conn.dialect)
        default = self._default_sql(field)
        ddl = f'ALTER TABLE "{table_name}" ADD COLUMN "{field.name}" {column_type}'
        if default is not None:
            ddl += f" DEFAULT {default}"
            # Existing rows need a value before the column can be NOT NULL
            if field.required:
                ddl += " NOT NULL"
        conn.execute(text(ddl))

        if field.unique:
            # SQLite cannot add a UNIQUE column; a unique index works on both dialects
            conn.execute(
                text(
                    f'CREATE UNIQUE INDEX "uq_{table_name}_{field.name}" '
                    f'ON "{table_name}" ("{field.name}")'
                )
            )

    def _add_foreign_key_column(
        self,
        conn: Connection,
        table_name: str,
        field: FieldDefinition,
        relation: ManyToOne | OneToOne,
    ) -> str | None:
        column = f"{field.name}_id"
        target = _target_table(field)
        target_exists = target == table_name or inspect(conn).has_table(target)

        if self._is_postgresql:
            conn.execute(text(f'ALTER TABLE "{table_name}" ADD COLUMN "{column}" INTEGER'))
            if target_exists:
                self._add_foreign_key_constraint(
                    conn, table_name, column, target, relation.on_delete.sql
                )
        elif target_exists:
            conn.execute(
                text(
                    f'ALTER TABLE "{table_name}" ADD COLUMN "{column}" INTEGER '
                    f'CONSTRAINT "{foreign_key_name(table_name, column)}" '
                    f'REFERENCES "{target}" ("id") ON DELETE {relation.on_delete.sql}'
                )
            )
        else:
            conn.execute(text(f'ALTER TABLE "{table_name}" ADD COLUMN "{column}" INTEGER'))

        if target_exists:
            return None
        return (
            f"Target table '{target}' of relation '{table_name}.{field.name}' "
            f"does not exist; column '{column}' created without a foreign key"
        )

    def _drop_columns(self, table_name: str, columns: list[str]) -> None:
        if self._is_postgresql:
            with self._connection.ddl_scope() as conn:
                for column in columns:
                    conn.execute(
                        text(f'ALTER TABLE "{table_name}" DROP COLUMN IF EXISTS "{column}" CASCADE')
                    )
            return

        # SQLite rebuilds the table. The copy-and-rename would fire ON DELETE
        # actions of referencing tables, so foreign keys are switched off for it;
        # the pragma is ignored inside a transaction.
        with self._connection.engine.connect() as conn:
            for column in columns:
                conn.exec_driver_sql(f'DROP INDEX IF EXISTS "uq_{table_name}_{column}"')
            conn.exec_driver_sql("PRAGMA foreign_keys = OFF")
            conn.commit()
            try:
                operations = Operations(MigrationContext.configure(conn))
                with operations.batch_alter_table(table_name, recreate="always") as batch:
                    for column in columns:
                        batch.drop_column(column)
                conn.commit()
            finally:
                conn.exec_driver_sql("PRAGMA foreign_keys = ON")
                conn.commit()

    def _create_junctions(
        self, conn: Connection, table_name: str, fields: Iterable[FieldDefinition]
    ) -> list[str]:
        warnings: list[str] = []
        inspector = inspect(conn)
        for field in _owning_many_to_many(fields):
            target = _target_table(field)
            name = junction_table_name(field.name, table_name, target)
            if target != table_name and not inspector.has_table(target):
                warnings.append(
                    f"Target table '{target}' of relation '{table_name}.{field.name}' "
                    f"does not exist; junction table '{name}' not created"
                )
                continue
            if inspector.has_table(name):
                logger.info(f"Junction table '{name}' already exists, skipping")
                continue

            source_column, target_column = junction_columns(table_name, target)
            metadata = MetaData()
            Table(table_name, metadata, Column("id", Integer, primary_key=True))
            if target != table_name:
                Table(target, metadata, Column("id", Integer, primary_key=True))
            junction = Table(
                name,
                metadata,
                Column(
                    source_column,
                    Integer,
                    ForeignKey(f"{table_name}.id", ondelete="CASCADE"),
                    primary_key=True,
                    nullable=False,
                ),
                Column(
                    target_column,
                    Integer,
                    ForeignKey(f"{target}.id", ondelete="CASCADE"),
                    primary_key=True,
                    nullable=False,
                ),
            )
            junction.create(conn)
            logger.info(f"Created junction table '{name}'")
        return warnings
