"""SearchBuild error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Index directory
- 4xxx: Store connection
- 5xxx: Store read
- 6xxx: Index write (stage, commit, flush)
- 7xxx: Cleanup
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_MISSING_REQUIRED = 2003
    CONFIG_FILE_NOT_FOUND = 2004

    # Index directory (3xxx)
    DIRECTORY_REMOVAL_FAILED = 3001
    DIRECTORY_CREATE_FAILED = 3002

    # Store connection (4xxx)
    CONNECT_DRIVER_LOAD_FAILED = 4001
    CONNECT_FAILED = 4002

    # Store read (5xxx)
    READ_QUERY_FAILED = 5001
    READ_UNMAPPABLE_TYPE = 5002

    # Index write (6xxx)
    INDEX_OPEN_FAILED = 6000
    INDEX_STAGE_FAILED = 6001
    INDEX_COMMIT_FAILED = 6002
    INDEX_FLUSH_FAILED = 6003

    # Cleanup (7xxx)
    CLEANUP_FAILED = 7001

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(eq=False)
class SearchBuildError(Exception):
    """Base error with structured context for run outcomes."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'READ_QUERY_FAILED')."""
        return self.code.name

    @property
    def record_type(self) -> str | None:
        """Name of the record type being processed when the error occurred."""
        value = self.details.get("type")
        return str(value) if value is not None else None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(SearchBuildError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def missing_required(cls, field: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_REQUIRED,
            message=f"Missing required config field: {field}",
            details={"field": field},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class DirectoryError(SearchBuildError):
    """Index directory could not be dropped or created."""

    @classmethod
    def removal_failed(cls, path: str, reason: str) -> "DirectoryError":
        return cls(
            code=ErrorCode.DIRECTORY_REMOVAL_FAILED,
            message=f"Failed to remove index directory {path}: {reason}",
            details={"path": path, "cause": reason},
        )

    @classmethod
    def create_failed(cls, path: str, reason: str = "directory does not exist") -> "DirectoryError":
        return cls(
            code=ErrorCode.DIRECTORY_CREATE_FAILED,
            message=f"Failed to create index directory {path}: {reason}",
            details={"path": path, "cause": reason},
        )


class ConnectError(SearchBuildError):
    """Store driver could not be loaded or the connection was refused."""

    @classmethod
    def driver_load_failed(cls, driver: str, reason: str) -> "ConnectError":
        return cls(
            code=ErrorCode.CONNECT_DRIVER_LOAD_FAILED,
            message=f"Failed to load store driver '{driver}': {reason}",
            details={"driver": driver, "cause": reason},
        )

    @classmethod
    def connection_failed(cls, url: str, reason: str) -> "ConnectError":
        return cls(
            code=ErrorCode.CONNECT_FAILED,
            message=f"Failed to connect to {url}: {reason}",
            retryable=True,
            details={"url": url, "cause": reason},
        )


class ReadError(SearchBuildError):
    """Reading the live instances of a record type failed."""

    @classmethod
    def query_failed(cls, type_name: str, reason: str) -> "ReadError":
        return cls(
            code=ErrorCode.READ_QUERY_FAILED,
            message=f"Failed to read records of type {type_name}: {reason}",
            details={"type": type_name, "cause": reason},
        )

    @classmethod
    def unmappable_type(cls, type_name: str) -> "ReadError":
        return cls(
            code=ErrorCode.READ_UNMAPPABLE_TYPE,
            message=f"Type {type_name} is not mapped to a table and cannot be queried",
            details={"type": type_name, "cause": "unmapped"},
        )


class StageError(SearchBuildError):
    """The index rejected a record (or could not open a target for it)."""

    @classmethod
    def open_failed(cls, location: str, reason: str, **details: Any) -> "StageError":
        return cls(
            code=ErrorCode.INDEX_OPEN_FAILED,
            message=f"Failed to open index at {location}: {reason}",
            details={"location": location, "cause": reason, **details},
        )

    @classmethod
    def rejected(cls, type_name: str, reason: str, **details: Any) -> "StageError":
        return cls(
            code=ErrorCode.INDEX_STAGE_FAILED,
            message=f"Index rejected record of type {type_name}: {reason}",
            details={"type": type_name, "cause": reason, **details},
        )


class CommitError(SearchBuildError):
    """The index rejected a batch."""

    @classmethod
    def rejected(cls, type_name: str, reason: str) -> "CommitError":
        return cls(
            code=ErrorCode.INDEX_COMMIT_FAILED,
            message=f"Index rejected batch for type {type_name}: {reason}",
            details={"type": type_name, "cause": reason},
        )


class FlushError(SearchBuildError):
    """Committed writes could not be made durable."""

    @classmethod
    def failed(cls, location: str, reason: str) -> "FlushError":
        return cls(
            code=ErrorCode.INDEX_FLUSH_FAILED,
            message=f"Failed to flush index at {location}: {reason}",
            details={"location": location, "cause": reason},
        )


class CleanupError(SearchBuildError):
    """Releasing a run resource failed. Reported, never the primary failure."""

    @classmethod
    def failed(cls, resource: str, reason: str) -> "CleanupError":
        return cls(
            code=ErrorCode.CLEANUP_FAILED,
            message=f"Failed to close {resource}: {reason}",
            details={"resource": resource, "cause": reason},
        )


class InternalError(SearchBuildError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )

    @classmethod
    def wrap(cls, exc: BaseException) -> "InternalError":
        """Convert a non-domain exception, chained to it like ``raise ... from exc``."""
        try:
            name = type(exc).__name__
            raise cls.unexpected(str(exc) or name, exception=name) from exc
        except InternalError as wrapped:
            return wrapped
