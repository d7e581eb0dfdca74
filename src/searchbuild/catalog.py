"""Entity catalog - which record types a run indexes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from searchbuild.core.logging import get_logger
from searchbuild.markers import SearchSpec
from searchbuild.store.metadata import TypeMetadata

log = get_logger("catalog")


@dataclass(frozen=True, slots=True)
class RecordType:
    """An indexable class of entity, fixed for the duration of a run."""

    name: str
    metadata: TypeMetadata

    @property
    def model(self) -> type:
        return self.metadata.model

    @property
    def search(self) -> SearchSpec:
        # discover() only builds RecordTypes for tagged metadata
        assert self.metadata.search is not None
        return self.metadata.search

    @property
    def index_name(self) -> str:
        return self.search.index_name or self.name

    def __str__(self) -> str:
        return self.name


class EntityCatalog:
    """Selects the explicitly tagged types from store metadata.

    Usage::

        catalog = EntityCatalog()
        for record_type in catalog.discover(load_store_metadata(models)):
            ...
    """

    def discover(self, store_metadata: Mapping[str, TypeMetadata]) -> tuple[RecordType, ...]:
        """Return the indexable types in the mapping's iteration order.

        Duplicates (by name or by model class) keep their first occurrence.
        Performs no I/O.
        """
        seen_names: set[str] = set()
        seen_models: set[type] = set()
        types: list[RecordType] = []
        for name, meta in store_metadata.items():
            if meta.search is None:
                continue
            if name in seen_names or meta.model in seen_models:
                continue
            seen_names.add(name)
            seen_models.add(meta.model)
            types.append(RecordType(name=name, metadata=meta))

        log.debug(
            "catalog_discovered",
            candidates=len(store_metadata),
            indexable=[t.name for t in types],
        )
        return tuple(types)
