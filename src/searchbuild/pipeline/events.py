"""Run states and the events emitted on state transitions.

The pipeline never writes progress output itself. It emits a RunEvent on each
transition and hands it to its observers, which decide where it goes:

- LoggingObserver: one structlog line per event
- ConsoleObserver: Rich status lines for the CLI
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from searchbuild.core.logging import get_logger
from searchbuild.core.progress import pluralize, status


class RunState(Enum):
    """Reindex run state machine."""

    IDLE = "idle"
    DIRECTORY_PREPARED = "directory_prepared"
    SESSION_OPEN = "session_open"
    FETCHING = "fetching"
    STAGING = "staging"
    COMMITTING = "committing"
    FLUSHED = "flushed"
    CLOSED = "closed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (RunState.CLOSED, RunState.FAILED)


class EventKind(str, Enum):
    DIRECTORY_PREPARED = "directory_prepared"
    SESSION_OPENED = "session_opened"
    TYPE_STARTED = "type_started"
    INDEX_TARGET = "index_target"
    TYPE_COMMITTED = "type_committed"
    RUN_FLUSHED = "run_flushed"
    RUN_FAILED = "run_failed"
    CLEANUP_WARNING = "cleanup_warning"
    RUN_CLOSED = "run_closed"
    RUN_SKIPPED = "run_skipped"


@dataclass(frozen=True)
class RunEvent:
    """One state transition, with whatever context it carries."""

    kind: EventKind
    state: RunState
    record_type: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)


class RunObserver(Protocol):
    def __call__(self, event: RunEvent) -> None: ...


class LoggingObserver:
    """Writes every event to the structlog pipeline."""

    def __init__(self) -> None:
        self._log = get_logger("pipeline")

    def __call__(self, event: RunEvent) -> None:
        context: dict[str, Any] = {"state": event.state.value, **event.fields}
        if event.record_type is not None:
            context["type"] = event.record_type

        if event.kind is EventKind.RUN_FAILED:
            self._log.error(event.kind.value, **context)
        elif event.kind is EventKind.CLEANUP_WARNING:
            self._log.warning(event.kind.value, **context)
        elif event.kind is EventKind.INDEX_TARGET:
            self._log.debug(event.kind.value, **context)
        else:
            self._log.info(event.kind.value, **context)


class ConsoleObserver:
    """Human-readable progress lines for an interactive run."""

    def __call__(self, event: RunEvent) -> None:
        kind = event.kind
        f = event.fields
        if kind is EventKind.DIRECTORY_PREPARED:
            verb = "Dropped and recreated" if f.get("dropped") else "Using"
            status(f"{verb} index directory {f.get('path')}")
        elif kind is EventKind.TYPE_STARTED:
            status(f"Indexing {event.record_type}")
        elif kind is EventKind.INDEX_TARGET:
            status(f"index target: {f.get('location')}", indent=2)
        elif kind is EventKind.TYPE_COMMITTED:
            status(
                f"{event.record_type}: {pluralize(f.get('records', 0), 'record')}",
                style="success",
                indent=2,
            )
        elif kind is EventKind.RUN_FLUSHED:
            status(f"Flushed {pluralize(f.get('documents', 0), 'document')}", style="success")
        elif kind is EventKind.RUN_FAILED:
            status(str(f.get("error")), style="error")
        elif kind is EventKind.CLEANUP_WARNING:
            status(str(f.get("warning")), style="warning")
        elif kind is EventKind.RUN_SKIPPED:
            status("Skipping search index population")
