"""Generator settings.

Values resolve in order: explicit argument, environment variable, default.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

DATABASE_URL_ENV = "SIRHGEN_DATABASE_URL"
OUTPUT_DIR_ENV = "SIRHGEN_OUTPUT_DIR"

DEFAULT_DATABASE_URL = "sqlite:///./sirhgen.db"
DEFAULT_OUTPUT_DIR = "./generated"

# Entities of the host application that predate the generator
DEFAULT_SYSTEM_ENTITIES = {
    "User": "users",
    "Application": "applications",
    "MenuItem": "menu_items",
    "EntityPage": "entity_pages",
    "PageField": "page_fields",
}


def get_database_url(url: str | None = None) -> str:
    """Resolve database URL from argument, environment variable, or default.

    Priority:
    1. Explicit URL argument
    2. SIRHGEN_DATABASE_URL environment variable
    3. Default: sqlite:///./sirhgen.db
    """
    if url:
        return url
    if env_url := os.getenv(DATABASE_URL_ENV):
        return env_url
    return DEFAULT_DATABASE_URL


def get_output_dir(path: str | Path | None = None) -> Path:
    """Resolve the artifact output directory the same way as the database URL."""
    if path:
        return Path(path)
    if env_path := os.getenv(OUTPUT_DIR_ENV):
        return Path(env_path)
    return Path(DEFAULT_OUTPUT_DIR)


class GeneratorSettings(BaseModel):
    """Settings of an EntityGenerator."""

    database_url: str = Field(default=DEFAULT_DATABASE_URL, description="SQLAlchemy URL")
    output_dir: Path = Field(default=Path(DEFAULT_OUTPUT_DIR), description="Artifact root")
    echo: bool = Field(default=False, description="Echo SQL statements")
    system_entities: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SYSTEM_ENTITIES),
        description="Entity name -> table of entities the generator must not touch",
    )
    lock_file_name: str = Field(default=".generator-lock", description="Generation gate marker")

    @classmethod
    def from_env(
        cls,
        database_url: str | None = None,
        output_dir: str | Path | None = None,
        **overrides: object,
    ) -> GeneratorSettings:
        """Build settings from arguments, falling back to the environment."""
        return cls(
            database_url=get_database_url(database_url),
            output_dir=get_output_dir(output_dir),
            **overrides,  # type: ignore[arg-type]
        )
