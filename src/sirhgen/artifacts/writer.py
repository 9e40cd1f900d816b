"""Writes generated file sets under the output directory.

Also owns the generation gate: while a generate/update/delete runs, a
``.generator-lock`` marker sits in the output directory. Dev-reload file
watchers check for it and ignore changes while it exists.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from sirhgen.exceptions import ArtifactWriteError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_FILE = ".generator-lock"


class ArtifactWriter:
    """Writes and removes entity modules in one batch per operation."""

    def __init__(self, output_dir: str | Path, lock_file_name: str = DEFAULT_LOCK_FILE) -> None:
        """Initialize the writer.

        Args:
            output_dir: Root directory of the generated package
            lock_file_name: Marker file name of the generation gate
        """
        self._output_dir = Path(output_dir)
        self._lock_path = self._output_dir / lock_file_name

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    @property
    def lock_path(self) -> Path:
        return self._lock_path

    @property
    def is_generating(self) -> bool:
        """Whether a generation is in progress (the marker file exists)."""
        return self._lock_path.exists()

    @contextmanager
    def generation_gate(self) -> Iterator[None]:
        """Hold the "generation in progress" marker for the duration of the block.

        The marker is removed on every exit path, including exceptions.

        Raises:
            ArtifactWriteError: If the marker cannot be created
        """
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            self._lock_path.write_text(f"{os.getpid()} {datetime.now(UTC).isoformat()}\n")
        except OSError as e:
            raise ArtifactWriteError(
                f"Failed to create generation lock: {e}", path=str(self._lock_path)
            ) from e
        logger.debug(f"Generation gate acquired ({self._lock_path})")
        try:
            yield
        finally:
            self._lock_path.unlink(missing_ok=True)
            logger.debug("Generation gate released")

    def module_dir(self, module: str) -> Path:
        return self._output_dir / module

    def write(self, module: str, files: Mapping[str, str]) -> list[str]:
        """Write an entity module, replacing files that already exist.

        Args:
            module: Module directory name under the output directory
            files: File name -> source text

        Returns:
            Paths of the written files

        Raises:
            ArtifactWriteError: If a file cannot be written
        """
        return self._write_files(self.module_dir(module), files)

    def write_support(self, files: Mapping[str, str]) -> list[str]:
        """Write shared files at the output root."""
        return self._write_files(self._output_dir, files)

    def remove(self, module: str) -> bool:
        """Remove an entity module directory.

        Returns:
            True if the directory existed

        Raises:
            ArtifactWriteError: If the directory cannot be removed
        """
        directory = self.module_dir(module)
        if not directory.exists():
            return False
        try:
            shutil.rmtree(directory)
        except OSError as e:
            raise ArtifactWriteError(
                f"Failed to remove '{directory}': {e}", path=str(directory)
            ) from e
        logger.info(f"Removed generated module '{module}'")
        return True

    def _write_files(self, directory: Path, files: Mapping[str, str]) -> list[str]:
        written: list[str] = []
        try:
            directory.mkdir(parents=True, exist_ok=True)
            for file_name, content in files.items():
                path = directory / file_name
                # Write next to the target and rename, so readers never see a partial file
                fd, tmp_name = tempfile.mkstemp(
                    dir=directory, prefix=f".{file_name}.", suffix=".tmp"
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        handle.write(content)
                    os.replace(tmp_name, path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
                written.append(str(path))
        except OSError as e:
            raise ArtifactWriteError(
                f"Failed to write '{directory}': {e}", path=str(directory)
            ) from e
        logger.info(f"Wrote {len(written)} file(s) to '{directory}'")
        return written
