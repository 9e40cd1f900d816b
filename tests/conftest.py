"""Shared test fixtures for sirhgen."""

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from sirhgen import EntityGenerator
from sirhgen.core.connection import DatabaseConnection
from sirhgen.schema.store import EntityMetadataStore
from sirhgen.storage.synchronizer import SchemaSynchronizer


def _psycopg_available() -> bool:
    """Check if psycopg is installed."""
    try:
        import psycopg  # noqa: F401

        return True
    except ImportError:
        return False


def _postgresql_connectable(url: str) -> bool:
    """Check if we can connect to PostgreSQL."""
    if not _psycopg_available():
        return False
    try:
        conn = DatabaseConnection(url)
        result = conn.test_connection()
        conn.close()
        return result
    except Exception:
        return False


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """URL of a temporary SQLite database file."""
    return f"sqlite:///{tmp_path / 'sirh.db'}"


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Directory receiving generated artifacts."""
    return tmp_path / "generated"


@pytest.fixture
def connection(sqlite_url: str) -> Generator[DatabaseConnection, None, None]:
    """A SQLite connection on a temporary file."""
    conn = DatabaseConnection(sqlite_url)
    yield conn
    conn.close()


@pytest.fixture
def store(connection: DatabaseConnection) -> EntityMetadataStore:
    """An initialized metadata store."""
    metadata_store = EntityMetadataStore(connection)
    metadata_store.initialize()
    return metadata_store


@pytest.fixture
def synchronizer(connection: DatabaseConnection) -> SchemaSynchronizer:
    """A schema synchronizer on the temporary database."""
    return SchemaSynchronizer(connection)


@pytest.fixture
def generator(sqlite_url: str, output_dir: Path) -> Generator[EntityGenerator, None, None]:
    """An EntityGenerator on a temporary SQLite file."""
    gen = EntityGenerator(sqlite_url, output_dir=output_dir)
    yield gen
    gen.close()


@pytest.fixture
def memory_generator(output_dir: Path) -> Generator[EntityGenerator, None, None]:
    """An EntityGenerator on SQLite in-memory.

    Faster for tests that never reopen the database.
    """
    gen = EntityGenerator("sqlite:///:memory:", output_dir=output_dir)
    yield gen
    gen.close()


@pytest.fixture
def postgresql_url() -> str:
    """Get PostgreSQL URL from environment or use default.

    Skips the test when psycopg is missing or the server is unreachable.
    """
    url = os.environ.get("TEST_DATABASE_URL")
    if not url:
        # Default to local PostgreSQL
        url = "postgresql://localhost/sirhgen_test"

    # Skip if psycopg not available
    if not _psycopg_available():
        pytest.skip("psycopg not installed")

    # Skip if can't connect (no PostgreSQL server)
    if not _postgresql_connectable(url):
        pytest.skip(f"Cannot connect to PostgreSQL at {url}")

    return url


@pytest.fixture
def pg_generator(
    postgresql_url: str, output_dir: Path
) -> Generator[EntityGenerator, None, None]:
    """An EntityGenerator on PostgreSQL.

    Deletes every entity the test generated, then drops the registry tables.
    """
    gen = EntityGenerator(postgresql_url, output_dir=output_dir)
    yield gen
    for summary in gen.list():
        gen.delete(summary.name)

    from sqlalchemy import text

    with gen._connection.engine.connect() as conn:
        result = conn.execute(text("SELECT tablename FROM pg_tables WHERE tablename LIKE 'sg_%'"))
        for row in result:
            conn.execute(text(f'DROP TABLE IF EXISTS "{row[0]}" CASCADE'))
        conn.commit()
    gen.close()

