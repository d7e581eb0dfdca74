"""Run-scoped resources.

ResourceScope makes the mapping modules importable for one run and puts the
import path back afterwards. RunContext holds the store connection and index
session a run owns.
"""

from __future__ import annotations

import importlib
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType, TracebackType
from typing import TYPE_CHECKING

from searchbuild.core.errors import ConfigError
from searchbuild.core.logging import get_logger
from searchbuild.store.metadata import collect_models

if TYPE_CHECKING:
    from searchbuild.index.writer import IndexWriter
    from searchbuild.store.database import StoreConnection

log = get_logger("context")


@dataclass(frozen=True)
class ResolvedResources:
    """Modules and model classes resolved inside a ResourceScope."""

    modules: tuple[ModuleType, ...] = ()
    models: tuple[type, ...] = ()


class ResourceScope:
    """Import mapping modules with extra search paths, for one run.

    Usage::

        with ResourceScope(["src"], ["shop.models"]) as resources:
            metadata = load_store_metadata(resources.models)

    The previous ``sys.path`` is restored on exit, whatever happened inside.
    Modules already imported stay in ``sys.modules``.
    """

    def __init__(self, search_paths: Sequence[str] = (), modules: Sequence[str] = ()) -> None:
        self.search_paths = [str(Path(p).expanduser()) for p in search_paths]
        self.module_names = list(modules)
        self._saved_path: list[str] | None = None

    def __enter__(self) -> ResolvedResources:
        self._saved_path = list(sys.path)
        sys.path[:0] = [p for p in self.search_paths if p not in sys.path]
        try:
            return self._resolve()
        except BaseException:
            self._restore()
            raise

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._restore()

    def _restore(self) -> None:
        if self._saved_path is not None:
            sys.path[:] = self._saved_path
            self._saved_path = None

    def _resolve(self) -> ResolvedResources:
        modules: list[ModuleType] = []
        for name in self.module_names:
            try:
                modules.append(importlib.import_module(name))
            except ImportError as e:
                raise ConfigError.invalid_value("mapping.modules", name, str(e)) from e
        models = collect_models(modules)
        log.debug(
            "resources_resolved",
            modules=self.module_names,
            models=[m.__name__ for m in models],
        )
        return ResolvedResources(modules=tuple(modules), models=tuple(models))


@dataclass
class RunContext:
    """Store connection and index session owned by a single run. Never reused."""

    store: StoreConnection | None = None
    writer: IndexWriter | None = None
