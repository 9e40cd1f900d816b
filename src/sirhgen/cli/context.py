"""CLI context management for generator connections and shared state."""

from dataclasses import dataclass, field
from pathlib import Path

from sirhgen import EntityGenerator


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Manages the generator lifecycle and output preferences.
    """

    database_url: str
    output_dir: Path
    echo: bool
    json_output: bool
    _generator: EntityGenerator | None = field(default=None, init=False, repr=False)

    def get_generator(self) -> EntityGenerator:
        """Get or create the generator (lazy initialization).

        Returns:
            EntityGenerator instance
        """
        if self._generator is None:
            self._generator = EntityGenerator(
                self.database_url, output_dir=self.output_dir, echo=self.echo
            )
        return self._generator

    def close(self) -> None:
        """Close the generator's database connection if open."""
        if self._generator is not None:
            self._generator.close()
            self._generator = None
