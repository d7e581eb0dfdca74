"""Search markers for mapped model classes.

A model class becomes an indexable type only when it is explicitly tagged::

    from searchbuild.markers import searchable

    @searchable(fields=("name", "email"), embedded=("orders",))
    class Customer(SQLModel, table=True):
        ...

The tag is read once, when store metadata is loaded. Nothing is inferred
from column types or class names.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

SEARCH_ATTR = "__search__"

T = TypeVar("T", bound=type)


@dataclass(frozen=True, slots=True)
class SearchSpec:
    """What to index for a tagged type.

    Attributes:
        fields: Column attributes rendered as text fields. Empty means every
            mapped column.
        embedded: Relationship attributes whose related objects are folded
            into the root document, one text field per relationship.
        index_name: Physical index name. Defaults to the type name.
        shards: Physical partitions for this type. None uses the configured default.
    """

    fields: tuple[str, ...] = ()
    embedded: tuple[str, ...] = ()
    index_name: str | None = None
    shards: int | None = None

    def __post_init__(self) -> None:
        if self.shards is not None and self.shards < 1:
            raise ValueError(f"shards must be >= 1, got {self.shards}")


def searchable(
    cls: T | None = None,
    *,
    fields: Sequence[str] = (),
    embedded: Sequence[str] = (),
    index_name: str | None = None,
    shards: int | None = None,
) -> T | Callable[[T], T]:
    """Tag a model class as a search target.

    Usable bare (``@searchable``) or with options (``@searchable(fields=...)``).
    """
    spec = SearchSpec(
        fields=tuple(fields),
        embedded=tuple(embedded),
        index_name=index_name,
        shards=shards,
    )

    def decorate(target: T) -> T:
        # Set on the class itself so subclasses are not tagged implicitly
        setattr(target, SEARCH_ATTR, spec)
        return target

    if cls is not None:
        return decorate(cls)
    return decorate


def search_spec_of(cls: Any) -> SearchSpec | None:
    """Return the tag declared directly on ``cls``, ignoring inherited ones."""
    spec = vars(cls).get(SEARCH_ATTR) if isinstance(cls, type) else None
    return spec if isinstance(spec, SearchSpec) else None
