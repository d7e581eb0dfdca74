"""Reindex pipeline - one full rebuild of the search index.

State machine::

    IDLE -> DIRECTORY_PREPARED -> SESSION_OPEN
         -> {FETCHING -> STAGING -> COMMITTING -> SESSION_OPEN} per type
         -> FLUSHED -> CLOSED

FAILED is reachable from every non-terminal state. Whatever the state, the
run ends with the same cleanup, in this order:

1. flush (best effort, unless the run already flushed)
2. close the index session
3. close the store connection

Cleanup failures become warnings on the outcome. They never replace the
error that failed the run.
"""

from __future__ import annotations

import itertools
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from searchbuild.catalog import EntityCatalog
from searchbuild.core.errors import (
    CleanupError,
    FlushError,
    InternalError,
    SearchBuildError,
)
from searchbuild.core.logging import set_run_id
from searchbuild.index.directory import IndexDirectoryManager
from searchbuild.index.writer import IndexWriter
from searchbuild.pipeline.context import ResolvedResources, ResourceScope, RunContext
from searchbuild.pipeline.events import EventKind, LoggingObserver, RunEvent, RunObserver, RunState
from searchbuild.store.database import Database
from searchbuild.store.metadata import load_store_metadata
from searchbuild.store.source import RecordSource

if TYPE_CHECKING:
    from searchbuild.catalog import RecordType
    from searchbuild.config.models import SearchBuildConfig

RunStatus = Literal["success", "failure", "skipped"]


@dataclass
class RunStats:
    """Counters and timings for one run."""

    records: dict[str, int] = field(default_factory=dict)
    type_durations_ms: dict[str, int] = field(default_factory=dict)
    documents_flushed: int = 0
    duration_ms: int = 0
    states: list[RunState] = field(default_factory=list)
    failed_in: RunState | None = None

    @property
    def final_state(self) -> RunState:
        return self.states[-1] if self.states else RunState.IDLE

    @property
    def total_records(self) -> int:
        return sum(self.records.values())


@dataclass
class RunOutcome:
    """Result of ReindexPipeline.run()."""

    status: RunStatus
    error: SearchBuildError | None = None
    warnings: list[str] = field(default_factory=list)
    stats: RunStats = field(default_factory=RunStats)
    run_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != "failure"


class ReindexPipeline:
    """Orchestrates one reindex run.

    Collaborators default to the real implementations and can be replaced::

        outcome = ReindexPipeline(config).run()
        if not outcome.ok:
            print(outcome.error)

    Args:
        config: Resolved configuration. Not modified.
        models: Model classes to consider. When None, ``config.mapping``
            modules are imported inside a ResourceScope.
        directory_manager: Prepares the index directory.
        database_factory: Builds the store connector from ``config.store``.
        writer_factory: Builds the index session from the run's IndexSettings.
        source_factory: Builds the record source from the run's ORM session.
        catalog: Selects the indexable types.
        observers: Receive a RunEvent on every transition. Defaults to a
            LoggingObserver.
    """

    def __init__(
        self,
        config: SearchBuildConfig,
        *,
        models: Sequence[type] | None = None,
        directory_manager: IndexDirectoryManager | None = None,
        database_factory: Callable[..., Any] | None = None,
        writer_factory: Callable[..., Any] | None = None,
        source_factory: Callable[..., Any] | None = None,
        catalog: EntityCatalog | None = None,
        observers: Sequence[RunObserver] | None = None,
    ) -> None:
        self.config = config
        self._models = models
        self._directory_manager = directory_manager or IndexDirectoryManager()
        self._database_factory = database_factory or Database
        self._writer_factory = writer_factory or IndexWriter
        self._source_factory = source_factory or RecordSource
        self._catalog = catalog or EntityCatalog()
        self._observers = list(observers) if observers is not None else [LoggingObserver()]

        self._state = RunState.IDLE
        self._error: SearchBuildError | None = None
        self._warnings: list[str] = []
        self._stats = RunStats()

    @property
    def state(self) -> RunState:
        return self._state

    def run(self) -> RunOutcome:
        """Rebuild the index. Never raises for run failures.

        KeyboardInterrupt and SystemExit go through cleanup and are re-raised.
        """
        if self.config.skip:
            self._emit(EventKind.RUN_SKIPPED)
            return RunOutcome(status="skipped")

        run_id = set_run_id()
        self._state = RunState.IDLE
        self._error = None
        self._warnings = []
        self._stats = RunStats(states=[RunState.IDLE])
        started = time.monotonic()

        try:
            with self._resources() as resources:
                self._run_in_scope(resources)
        except SearchBuildError as e:
            # Mapping modules could not be resolved; nothing was opened
            self._fail(e)
        finally:
            self._stats.duration_ms = int((time.monotonic() - started) * 1000)

        status: RunStatus = "failure" if self._error is not None else "success"
        return RunOutcome(
            status=status,
            error=self._error,
            warnings=list(self._warnings),
            stats=self._stats,
            run_id=run_id,
        )

    @contextmanager
    def _resources(self) -> Iterator[ResolvedResources]:
        if self._models is not None:
            yield ResolvedResources(models=tuple(self._models))
            return
        mapping = self.config.mapping
        with ResourceScope(mapping.search_paths, mapping.modules) as resources:
            yield resources

    def _run_in_scope(self, resources: ResolvedResources) -> None:
        ctx = RunContext()
        try:
            self._execute(ctx, resources)
        except SearchBuildError as e:
            self._fail(e)
        except Exception as e:
            self._fail(InternalError.wrap(e))
        except BaseException as e:
            self._fail(InternalError.unexpected(f"run interrupted by {type(e).__name__}"))
            raise
        finally:
            self._cleanup(ctx)

    def _execute(self, ctx: RunContext, resources: ResolvedResources) -> None:
        index_config = self.config.index
        settings = self._directory_manager.settings_for(index_config)
        self._transition(RunState.DIRECTORY_PREPARED)
        self._emit(
            EventKind.DIRECTORY_PREPARED,
            path=str(settings.index_base),
            dropped=index_config.drop,
            provider=settings.directory_provider,
        )

        database = self._database_factory(self.config.store)
        ctx.store = database.connect()
        ctx.writer = self._writer_factory(settings)
        ctx.writer.open()
        self._transition(RunState.SESSION_OPEN)
        self._emit(EventKind.SESSION_OPENED)

        record_types = self._catalog.discover(load_store_metadata(resources.models))
        source = self._source_factory(ctx.store.session)
        for record_type in record_types:
            self._index_type(ctx, source, record_type)

        self._stats.documents_flushed = ctx.writer.flush()
        self._transition(RunState.FLUSHED)
        self._emit(
            EventKind.RUN_FLUSHED,
            documents=self._stats.documents_flushed,
            types=len(record_types),
        )

    def _index_type(self, ctx: RunContext, source: Any, record_type: RecordType) -> None:
        assert ctx.store is not None and ctx.writer is not None
        name = record_type.name
        started = time.monotonic()

        self._transition(RunState.FETCHING)
        self._emit(EventKind.TYPE_STARTED, record_type=name)
        handle = ctx.writer.begin_batch(record_type)
        for target in handle.targets:
            self._emit(
                EventKind.INDEX_TARGET,
                record_type=name,
                shard=target.shard,
                location=target.location,
            )

        count = 0
        with ctx.store.transaction():
            records = iter(source.fetch_all(record_type))
            # The read is issued by the first row, so pull it before staging
            first = list(itertools.islice(records, 1))
            self._transition(RunState.STAGING)
            for record in itertools.chain(first, records):
                ctx.writer.stage(handle, record)
                count += 1
            self._transition(RunState.COMMITTING)
            ctx.writer.commit_batch(handle)

        self._stats.records[name] = count
        self._stats.type_durations_ms[name] = int((time.monotonic() - started) * 1000)
        self._emit(EventKind.TYPE_COMMITTED, record_type=name, records=count)
        self._transition(RunState.SESSION_OPEN)

    def _cleanup(self, ctx: RunContext) -> None:
        writer, store = ctx.writer, ctx.store

        if writer is not None and RunState.FLUSHED not in self._stats.states:
            try:
                documents = writer.flush()
            except FlushError as e:
                # Only reached while unwinding, so never the primary failure
                self._warn(f"flush during cleanup failed: {e}", error=e)
            except Exception as e:
                self._warn(f"flush during cleanup failed: {e}")
            else:
                self._stats.documents_flushed += documents

        if writer is not None:
            self._close("index session", writer.close)
        if store is not None:
            self._close("store connection", store.close)

        if self._error is None:
            self._transition(RunState.CLOSED)
        self._emit(
            EventKind.RUN_CLOSED,
            status="failure" if self._error is not None else "success",
            warnings=len(self._warnings),
        )

    def _close(self, resource: str, closer: Callable[[], None]) -> None:
        try:
            closer()
        except CleanupError as e:
            self._warn(str(e), error=e)
        except Exception as e:
            self._warn(str(CleanupError.failed(resource, str(e))))

    def _fail(self, error: SearchBuildError) -> None:
        if self._error is not None:
            # Only the first fatal error is reported as the cause
            self._warn(f"additional failure: {error}", error=error)
            return
        self._error = error
        self._stats.failed_in = self._state
        self._transition(RunState.FAILED)
        self._emit(
            EventKind.RUN_FAILED,
            record_type=error.record_type,
            error=str(error),
            code=error.code.value,
            failed_in=self._stats.failed_in.value,
        )

    def _warn(self, message: str, error: SearchBuildError | None = None) -> None:
        self._warnings.append(message)
        fields: dict[str, Any] = {"warning": message}
        if error is not None:
            fields["code"] = error.code.value
        self._emit(EventKind.CLEANUP_WARNING, **fields)

    def _transition(self, state: RunState) -> None:
        self._state = state
        self._stats.states.append(state)

    def _emit(self, kind: EventKind, record_type: str | None = None, **fields: Any) -> None:
        event = RunEvent(kind=kind, state=self._state, record_type=record_type, fields=fields)
        for observer in self._observers:
            observer(event)
