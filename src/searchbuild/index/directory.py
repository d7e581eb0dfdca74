"""Index directory lifecycle: drop, recreate, resolve."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from searchbuild.core.errors import DirectoryError
from searchbuild.core.logging import get_logger

if TYPE_CHECKING:
    from searchbuild.config.models import IndexConfig

log = get_logger("directory")

DEFAULT_DIRECTORY_PROVIDER = "filesystem"


@dataclass(frozen=True, slots=True)
class IndexSettings:
    """Index configuration as resolved for one run. Never modified afterwards."""

    index_base: Path
    directory_provider: str = DEFAULT_DIRECTORY_PROVIDER
    shards: int = 1


class IndexDirectoryManager:
    """Owns the directory the index lives in for the duration of a run."""

    def prepare(self, path: Path | str, drop_existing: bool) -> Path:
        """Drop (optionally) and recreate the index directory.

        Args:
            path: Index base directory.
            drop_existing: Recursively remove the directory first if it exists.

        Returns:
            The resolved absolute directory path.

        Raises:
            DirectoryError: If removal fails, or the directory does not exist
                after the create attempt.
        """
        directory = Path(path).expanduser().resolve()

        if drop_existing and (directory.exists() or directory.is_symlink()):
            log.info("directory_dropped", path=str(directory))
            try:
                if directory.is_dir() and not directory.is_symlink():
                    shutil.rmtree(directory)
                else:
                    directory.unlink()
            except OSError as e:
                raise DirectoryError.removal_failed(str(directory), str(e)) from e

        if not directory.exists():
            log.info("directory_created", path=str(directory))
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DirectoryError.create_failed(str(directory), str(e)) from e

        if not directory.is_dir():
            raise DirectoryError.create_failed(str(directory), "path exists but is not a directory")
        return directory

    def settings_for(self, config: IndexConfig, drop_existing: bool | None = None) -> IndexSettings:
        """Prepare the configured directory and record it in the run's settings.

        Raises:
            DirectoryError: As for prepare(); also when no directory is configured.
        """
        if not config.index_dir:
            raise DirectoryError.create_failed("<unset>", "index.index_dir is not configured")
        drop = config.drop if drop_existing is None else drop_existing
        resolved = self.prepare(config.index_dir, drop)
        return IndexSettings(
            index_base=resolved,
            directory_provider=config.directory_provider or DEFAULT_DIRECTORY_PROVIDER,
            shards=config.shards,
        )
