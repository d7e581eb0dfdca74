"""Structured logging for reindex runs.

structlog renders through stdlib logging so every output (console stream or
log file) gets its own level, format and handler. Each run binds a run id
that is stamped on every event it logs.

Loggers from get_logger() stay lazy: a module-level logger created at import
time picks up whatever configure_logging() installs later.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from searchbuild.config.models import LoggingConfig, LogOutputConfig

_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)

# First file output of the active configuration, for failure pointers
_log_file_path: Path | None = None

_CONSOLE_DESTINATIONS = frozenset({"stderr", "stdout"})


def get_run_id() -> str | None:
    return _run_id.get()


def set_run_id(run_id: str | None = None) -> str:
    """Bind the correlation id for the current run, generating one if needed."""
    rid = run_id or uuid4().hex[:12]
    _run_id.set(rid)
    return rid


def clear_run_id() -> None:
    _run_id.set(None)


def get_log_file_path() -> Path | None:
    """Log file of the active configuration, if any output writes to a file.

    The CLI prints it after a failed run.
    """
    return _log_file_path


def _stamp_run_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if rid := get_run_id():
        event_dict["run_id"] = rid
    return event_dict


def _level(name: str | None, default: int = logging.INFO) -> int:
    if not name:
        return default
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else default


class ConsoleSuppressingFilter(logging.Filter):
    """Drops console records while Rich status output owns the terminal.

    Only console handlers get this filter; log files keep every record.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        # Deferred: progress imports this module lazily too
        from searchbuild.core.progress import is_console_suppressed

        return not is_console_suppressed()


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
) -> None:
    """Install the structlog pipeline and one stdlib handler per output.

    Safe to call again; the previous handlers are replaced.

    Args:
        config: Logging configuration. When None, a single stderr output is
            built from ``json_format`` and ``level``.
        json_format: Render the default output as JSON lines.
        level: Root level for the default configuration.
    """
    global _log_file_path
    from searchbuild.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,  # type: ignore[arg-type]
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )

    root_level = _level(config.level)
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _stamp_run_id,  # type: ignore[list-item]
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(root_level)
    # SQL echo is controlled by store.echo, not by the root level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    _log_file_path = None
    for output in config.outputs:
        handler = _handler_for(output)
        handler.setLevel(_level(output.level, root_level))
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=_renderer_for(output),
                foreign_pre_chain=pre_chain,
            )
        )
        root.addHandler(handler)
        if output.destination not in _CONSOLE_DESTINATIONS and _log_file_path is None:
            _log_file_path = Path(output.destination)


def _handler_for(output: LogOutputConfig) -> logging.Handler:
    if output.destination in _CONSOLE_DESTINATIONS:
        stream = sys.stderr if output.destination == "stderr" else sys.stdout
        handler: logging.Handler = logging.StreamHandler(stream)
        handler.addFilter(ConsoleSuppressingFilter())
        return handler
    path = Path(output.destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a")


def _renderer_for(output: LogOutputConfig) -> structlog.types.Processor:
    if output.format == "json":
        return structlog.processors.JSONRenderer()
    on_terminal = output.destination == "stderr" and sys.stderr.isatty()
    return structlog.dev.ConsoleRenderer(colors=on_terminal, pad_level=False)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Lazy logger, tagged with ``logger=name`` when a name is given."""
    if name:
        return structlog.get_logger(logger=name)  # type: ignore[no-any-return]
    return structlog.get_logger()  # type: ignore[no-any-return]
