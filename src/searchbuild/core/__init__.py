"""Core module exports."""

from searchbuild.core.errors import (
    CleanupError,
    CommitError,
    ConfigError,
    ConnectError,
    DirectoryError,
    ErrorCode,
    FlushError,
    InternalError,
    ReadError,
    SearchBuildError,
    StageError,
)
from searchbuild.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)
from searchbuild.core.progress import pluralize, status

__all__ = [
    # Errors
    "SearchBuildError",
    "ErrorCode",
    "ConfigError",
    "DirectoryError",
    "ConnectError",
    "ReadError",
    "StageError",
    "CommitError",
    "FlushError",
    "CleanupError",
    "InternalError",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
    # Progress
    "pluralize",
    "status",
]
