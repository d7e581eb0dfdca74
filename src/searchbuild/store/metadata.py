"""Store metadata provider.

Turns mapped model classes into an ordered ``type-name -> TypeMetadata``
mapping. Each entry carries the searchable tag captured at load time, so the
catalog never inspects classes while a run is in progress.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from types import ModuleType
from typing import Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper

from searchbuild.markers import SearchSpec, search_spec_of


@dataclass(frozen=True, slots=True)
class TypeMetadata:
    """What the store knows about one model class."""

    name: str
    model: type
    mapped: bool
    search: SearchSpec | None = None
    table: str | None = None
    columns: tuple[str, ...] = ()
    relationships: tuple[str, ...] = ()

    @property
    def searchable(self) -> bool:
        return self.search is not None


def _mapper_for(cls: type) -> Mapper[Any] | None:
    try:
        mapper = sa_inspect(cls)
    except NoInspectionAvailable:
        return None
    return mapper if isinstance(mapper, Mapper) else None


def describe(cls: type) -> TypeMetadata:
    """Build the metadata entry for a single class."""
    mapper = _mapper_for(cls)
    spec = search_spec_of(cls)
    if mapper is None:
        return TypeMetadata(name=cls.__name__, model=cls, mapped=False, search=spec)

    table = getattr(mapper.local_table, "name", None)
    return TypeMetadata(
        name=cls.__name__,
        model=cls,
        mapped=True,
        search=spec,
        table=table,
        columns=tuple(attr.key for attr in mapper.column_attrs),
        relationships=tuple(rel.key for rel in mapper.relationships),
    )


def collect_models(modules: Sequence[ModuleType]) -> list[type]:
    """Find model classes defined in ``modules``, in definition order.

    A class qualifies when it is ORM-mapped or carries a search tag (tagged
    but unmapped classes are kept so the run can report them).
    Classes merely imported into a module are skipped.
    """
    found: list[type] = []
    seen: set[type] = set()
    for module in modules:
        for value in vars(module).values():
            if not isinstance(value, type) or value in seen:
                continue
            if value.__module__ != module.__name__:
                continue
            if _mapper_for(value) is None and search_spec_of(value) is None:
                continue
            seen.add(value)
            found.append(value)
    return found


def load_store_metadata(models: Iterable[type]) -> dict[str, TypeMetadata]:
    """Build the ordered metadata mapping for ``models``.

    Keys follow the order of ``models``. A later class whose name is already
    taken is ignored.
    """
    metadata: dict[str, TypeMetadata] = {}
    for cls in models:
        entry = describe(cls)
        metadata.setdefault(entry.name, entry)
    return metadata
