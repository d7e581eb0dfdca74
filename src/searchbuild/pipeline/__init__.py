"""Pipeline module - the reindex run state machine.

Public API:
- ReindexPipeline: Runs one full rebuild and returns a RunOutcome
- RunState / RunEvent: Transitions observed by LoggingObserver, ConsoleObserver
- ResourceScope: Makes mapping modules importable for the run
"""

from searchbuild.pipeline.context import ResolvedResources, ResourceScope, RunContext
from searchbuild.pipeline.events import (
    ConsoleObserver,
    EventKind,
    LoggingObserver,
    RunEvent,
    RunState,
)
from searchbuild.pipeline.runner import ReindexPipeline, RunOutcome, RunStats

__all__ = [
    "ReindexPipeline",
    "RunOutcome",
    "RunStats",
    "RunState",
    "RunEvent",
    "EventKind",
    "LoggingObserver",
    "ConsoleObserver",
    "ResourceScope",
    "ResolvedResources",
    "RunContext",
]
