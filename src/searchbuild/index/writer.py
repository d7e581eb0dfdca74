"""Index writer for full-text records via Tantivy.

This module provides the run's index session. Writes go through three
stages, mirroring the per-type unit of work:

- stage() buffers rendered documents on a batch handle
- commit_batch() hands a handle's documents to the target's Tantivy writer
- flush() commits every Tantivy writer that received documents

Nothing staged or committed is visible to index readers before flush().
Each target location belongs to exactly one type for the whole session.

Usage::

    writer = IndexWriter(settings)
    writer.open()
    try:
        handle = writer.begin_batch(record_type)
        for record in source.fetch_all(record_type):
            writer.stage(handle, record)
        writer.commit_batch(handle)
        writer.flush()
    finally:
        writer.close()
"""

from __future__ import annotations

import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import tantivy
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable, SQLAlchemyError

from searchbuild.core.errors import CleanupError, CommitError, FlushError, StageError
from searchbuild.core.logging import get_logger

if TYPE_CHECKING:
    from searchbuild.catalog import RecordType
    from searchbuild.index.directory import IndexSettings

log = get_logger("writer")

ID_FIELD = "_id"
TYPE_FIELD = "_type"
RAM_SCHEME = "ram://"

# Errors tantivy-py and the filesystem raise for rejected writes
_INDEX_ERRORS = (OSError, ValueError, RuntimeError)


@dataclass(frozen=True, slots=True)
class IndexTarget:
    """One physical partition of a type's index."""

    record_type: str
    shard: int
    location: str


@dataclass
class BatchHandle:
    """Per-type unit of work. Holds rendered documents until commit."""

    record_type: RecordType
    targets: tuple[IndexTarget, ...]
    staged: list[dict[str, str]] = field(default_factory=list)
    closed: bool = False

    @property
    def type_name(self) -> str:
        return self.record_type.name


class DirectoryProvider:
    """Physical storage strategy for index targets."""

    name = ""

    def __init__(self, index_base: Path) -> None:
        self.index_base = index_base

    def location(self, index_name: str, shard: int, shards: int) -> str:
        raise NotImplementedError

    def open_index(self, schema: Any, location: str) -> Any:
        raise NotImplementedError

    def check(self) -> None:
        """Raise StageError if the provider cannot serve targets."""


class FilesystemDirectoryProvider(DirectoryProvider):
    """One Tantivy directory per target under the index base."""

    name = "filesystem"

    def location(self, index_name: str, shard: int, shards: int) -> str:
        dirname = index_name if shards == 1 else f"{index_name}.{shard}"
        return str(self.index_base / dirname)

    def open_index(self, schema: Any, location: str) -> Any:
        path = Path(location)
        path.mkdir(parents=True, exist_ok=True)
        return tantivy.Index(schema, path=str(path))

    def check(self) -> None:
        if not self.index_base.is_dir():
            raise StageError.open_failed(str(self.index_base), "index base is not a directory")


class RamDirectoryProvider(DirectoryProvider):
    """In-memory Tantivy indexes. Contents live only as long as the writer."""

    name = "ram"

    def location(self, index_name: str, shard: int, shards: int) -> str:
        return f"{RAM_SCHEME}{index_name}.{shard}"

    def open_index(self, schema: Any, location: str) -> Any:
        return tantivy.Index(schema)


_PROVIDERS: dict[str, type[DirectoryProvider]] = {
    FilesystemDirectoryProvider.name: FilesystemDirectoryProvider,
    RamDirectoryProvider.name: RamDirectoryProvider,
}


def get_provider(name: str, index_base: Path) -> DirectoryProvider:
    """Look up a directory provider by its configured name."""
    try:
        provider_cls = _PROVIDERS[name]
    except KeyError:
        raise StageError.open_failed(
            str(index_base),
            f"unknown directory provider '{name}' (expected one of {sorted(_PROVIDERS)})",
        ) from None
    return provider_cls(index_base)


def text_fields(record_type: RecordType) -> tuple[str, ...]:
    """Column attributes rendered as text fields for ``record_type``."""
    spec = record_type.search
    return spec.fields or record_type.metadata.columns


def build_schema(record_type: RecordType) -> Any:
    """Tantivy schema: raw id/type fields plus one text field per column and relationship."""
    builder = tantivy.SchemaBuilder()
    # Raw tokenizer keeps the id as a single term for exact deletes
    builder.add_text_field(ID_FIELD, stored=True, tokenizer_name="raw")
    builder.add_text_field(TYPE_FIELD, stored=True, tokenizer_name="raw")
    for name in (*text_fields(record_type), *record_type.search.embedded):
        builder.add_text_field(name, stored=True, tokenizer_name="default")
    return builder.build()


def shard_for(doc_id: str, shards: int) -> int:
    """Stable shard assignment for a document id."""
    if shards == 1:
        return 0
    return zlib.crc32(doc_id.encode("utf-8")) % shards


def count_documents(location: str) -> int:
    """Document count of a flushed on-disk index, or 0 if none exists there."""
    if location.startswith(RAM_SCHEME) or not Path(location).is_dir():
        return 0
    if not tantivy.Index.exists(location):
        return 0
    index = tantivy.Index.open(location)
    index.reload()
    return int(index.searcher().num_docs)


class IndexWriter:
    """The run's single index session."""

    def __init__(self, settings: IndexSettings) -> None:
        self.settings = settings
        self._provider: DirectoryProvider | None = None
        self._indexes: dict[str, Any] = {}
        # location -> uncommitted Tantivy writer and its document count
        self._writers: dict[str, Any] = {}
        self._pending: dict[str, int] = {}
        # location -> name of the type that writes it
        self._owners: dict[str, str] = {}
        self._current: BatchHandle | None = None
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    @property
    def pending_count(self) -> int:
        """Committed documents not yet flushed."""
        return sum(self._pending.values())

    def open(self) -> None:
        """Open the index session.

        Raises:
            StageError: If the directory provider is unknown or unusable.
        """
        if self._closed:
            raise StageError.open_failed(str(self.settings.index_base), "writer already closed")
        if self._opened:
            return
        provider = get_provider(self.settings.directory_provider, self.settings.index_base)
        provider.check()
        self._provider = provider
        self._opened = True
        log.debug(
            "index_session_opened",
            base=str(self.settings.index_base),
            provider=provider.name,
        )

    def shards_for(self, record_type: RecordType) -> int:
        return record_type.search.shards or self.settings.shards

    def targets(self, record_type: RecordType) -> tuple[IndexTarget, ...]:
        """Physical targets ``record_type`` is written to."""
        provider = self._provider or get_provider(
            self.settings.directory_provider, self.settings.index_base
        )
        shards = self.shards_for(record_type)
        return tuple(
            IndexTarget(
                record_type=record_type.name,
                shard=shard,
                location=provider.location(record_type.index_name, shard, shards),
            )
            for shard in range(shards)
        )

    def begin_batch(self, record_type: RecordType) -> BatchHandle:
        """Start the unit of work for ``record_type`` and open its targets.

        Raises:
            StageError: If the session is not open, a configured field is not a
                column or relationship, or a target index cannot be opened.
            CommitError: If another batch is still open.
        """
        if not self.is_open or self._provider is None:
            raise StageError.open_failed(
                str(self.settings.index_base), "index session is not open", type=record_type.name
            )
        if self._current is not None and not self._current.closed:
            raise CommitError.rejected(
                record_type.name, f"batch for {self._current.type_name} is still open"
            )

        meta = record_type.metadata
        unknown = [f for f in record_type.search.fields if f not in meta.columns]
        unknown += [r for r in record_type.search.embedded if r not in meta.relationships]
        if unknown:
            raise StageError.rejected(
                record_type.name, f"unknown fields: {', '.join(unknown)}", fields=unknown
            )

        targets = self.targets(record_type)
        for target in targets:
            owner = self._owners.get(target.location)
            if owner is not None and owner != record_type.name:
                # Schemas differ per type; a shared index would drop fields
                raise StageError.open_failed(
                    target.location,
                    f"{record_type.name} cannot share an index target with {owner}",
                    type=record_type.name,
                    owner=owner,
                )
        try:
            schema = build_schema(record_type)
            for target in targets:
                if target.location not in self._indexes:
                    self._indexes[target.location] = self._provider.open_index(
                        schema, target.location
                    )
        except _INDEX_ERRORS as e:
            raise StageError.open_failed(
                targets[0].location if targets else str(self.settings.index_base),
                str(e),
                type=record_type.name,
            ) from e
        for target in targets:
            self._owners[target.location] = record_type.name

        handle = BatchHandle(record_type=record_type, targets=targets)
        self._current = handle
        return handle

    def stage(self, handle: BatchHandle, record: Any) -> None:
        """Render ``record`` and buffer it on ``handle``. Not durable.

        Raises:
            StageError: If the handle is closed or the record cannot be rendered.
        """
        if handle.closed or handle is not self._current:
            raise StageError.rejected(handle.type_name, "batch is not open")
        handle.staged.append(self.render(handle.record_type, record))

    def render(self, record_type: RecordType, record: Any) -> dict[str, str]:
        """Document fields for one record.

        Raises:
            StageError: If the record has no identity or a field cannot be read.
        """
        name = record_type.name
        if not isinstance(record, record_type.model):
            raise StageError.rejected(
                name, f"expected {record_type.model.__name__}, got {type(record).__name__}"
            )
        try:
            identity = sa_inspect(record).identity
        except NoInspectionAvailable as e:
            raise StageError.rejected(name, str(e)) from e
        if not identity:
            raise StageError.rejected(name, "record has no primary key identity")

        doc_id = f"{name}#{','.join(str(part) for part in identity)}"
        doc: dict[str, str] = {ID_FIELD: doc_id, TYPE_FIELD: name}
        try:
            for attr in text_fields(record_type):
                value = getattr(record, attr)
                if value is not None:
                    doc[attr] = str(value)
            for rel in record_type.search.embedded:
                doc[rel] = _embedded_text(getattr(record, rel))
        except (AttributeError, SQLAlchemyError) as e:
            raise StageError.rejected(name, str(e), id=doc_id) from e
        return doc

    def commit_batch(self, handle: BatchHandle) -> int:
        """End the unit of work. Staged documents go to their target's writer.

        Each document first deletes any earlier one with the same id. Nothing
        becomes searchable until flush().

        Returns:
            Number of documents committed.

        Raises:
            CommitError: If the handle is closed, does not belong to this writer,
                or Tantivy rejects a document. Documents not yet flushed at
                the batch's targets are then discarded.
        """
        if handle.closed:
            raise CommitError.rejected(handle.type_name, "batch already committed")
        if handle is not self._current:
            raise CommitError.rejected(handle.type_name, "batch does not belong to this writer")
        if not self.is_open:
            raise CommitError.rejected(handle.type_name, "index session is not open")

        shards = len(handle.targets)
        try:
            for fields in handle.staged:
                target = handle.targets[shard_for(fields[ID_FIELD], shards)]
                self._add(target.location, fields)
        except _INDEX_ERRORS as e:
            self._discard(handle.targets)
            raise CommitError.rejected(handle.type_name, str(e)) from e
        count = len(handle.staged)
        handle.staged.clear()
        handle.closed = True
        self._current = None
        log.debug("batch_committed", type=handle.type_name, count=count)
        return count

    def _add(self, location: str, fields: dict[str, str]) -> None:
        writer = self._writers.get(location)
        if writer is None:
            writer = self._writers[location] = self._indexes[location].writer()
        writer.delete_documents(ID_FIELD, fields[ID_FIELD])
        doc = tantivy.Document()
        for key, value in fields.items():
            doc.add_text(key, value)
        writer.add_document(doc)
        self._pending[location] = self._pending.get(location, 0) + 1

    def _discard(self, targets: tuple[IndexTarget, ...]) -> None:
        # Dropping an uncommitted Tantivy writer discards its documents
        for target in targets:
            self._writers.pop(target.location, None)
            self._pending.pop(target.location, None)

    def flush(self) -> int:
        """Commit every Tantivy writer holding committed documents.

        With nothing pending, returns 0 without touching any index.

        Returns:
            Number of documents written.

        Raises:
            FlushError: If Tantivy or the filesystem rejects the commit. The
                failed target's uncommitted documents are discarded.
        """
        if not self._pending:
            return 0

        written = 0
        for location in list(self._pending):
            count = self._pending.pop(location)
            writer = self._writers.pop(location, None)
            index = self._indexes.get(location)
            if writer is None or index is None:
                raise FlushError.failed(location, "index target was not opened")
            try:
                writer.commit()
                writer.wait_merging_threads()
                index.reload()
            except _INDEX_ERRORS as e:
                raise FlushError.failed(location, str(e)) from e
            written += count
            log.debug("target_flushed", location=location, count=count)
        return written

    def doc_count(self, target: IndexTarget) -> int:
        """Searchable documents in ``target`` (flushed documents only)."""
        index = self._indexes.get(target.location)
        if index is None:
            return count_documents(target.location)
        index.reload()
        return int(index.searcher().num_docs)

    def close(self) -> None:
        """Flush what is pending (best effort) and release every index.

        Safe to call more than once.

        Raises:
            CleanupError: If the final flush failed. Indexes are released anyway.
        """
        if self._closed:
            return
        self._closed = True
        failure: FlushError | None = None
        if self._pending:
            try:
                self.flush()
            except FlushError as e:
                failure = e
        self._pending.clear()
        self._writers.clear()
        self._owners.clear()
        self._indexes.clear()
        self._current = None
        self._provider = None
        log.debug("index_session_closed", base=str(self.settings.index_base))
        if failure is not None:
            raise CleanupError.failed("index session", failure.message) from failure


def _embedded_text(value: Any) -> str:
    if value is None:
        return ""
    related = value if isinstance(value, (list, tuple, set)) else [value]
    return "\n".join(_columns_text(obj) for obj in related)


def _columns_text(obj: Any) -> str:
    mapper = sa_inspect(obj).mapper
    values = (getattr(obj, attr.key) for attr in mapper.column_attrs)
    return " ".join(str(v) for v in values if v is not None)
