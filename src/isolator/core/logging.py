"""Structured logging for the isolator.

Uses structlog on top of stdlib logging.  Every logger is bound to a
component name, and relay code binds a ``RelayContext`` so that each log
entry carries the service index and connection id it belongs to.

Example usage:
    from isolator.core.logging import configure_logging, get_logger

    configure_logging(level="DEBUG", format="console")
    logger = get_logger("relay")
    logger.info("relay.started", raw_path="/run/app.sock")

    with with_context(RelayContext(service_id=0)):
        logger.warning("relay.accept_failed")  # includes service_id=0
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console", "both"]


@dataclass(frozen=True)
class RelayContext:
    """Correlation fields attached to every log entry inside ``with_context()``.

    Attributes:
        service_id: Index of the service in the loaded configuration.
        connection_id: Short random id of one accepted connection, or None
            outside a connection.
    """

    service_id: int
    connection_id: str | None = None

    def with_connection(self, connection_id: str | None = None) -> RelayContext:
        """Return a copy scoped to a single connection."""
        return RelayContext(
            service_id=self.service_id,
            connection_id=connection_id or new_connection_id(),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"service_id": self.service_id}
        if self.connection_id is not None:
            result["connection_id"] = self.connection_id
        return result


def new_connection_id() -> str:
    """Generate a short id used to correlate the log lines of one connection."""
    return uuid.uuid4().hex[:12]


# asyncio tasks copy the current context when created, so relay tasks
# spawned inside with_context() keep the service_id of their node.
_current_context: ContextVar[RelayContext | None] = ContextVar(
    "isolator_context", default=None
)


def get_current_context() -> RelayContext | None:
    """Get the current RelayContext if set."""
    return _current_context.get()


@contextmanager
def with_context(ctx: RelayContext) -> Iterator[RelayContext]:
    """Set ``ctx`` as the current RelayContext for the duration of a block."""
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds RelayContext fields.

    Explicitly passed keys take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds an ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _get_processors(
    renderer: Processor,
    include_timestamps: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _add_context,
    ]
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
) -> None:
    """Configure structured logging for the process.

    Call once at startup, before the relay starts.

    Args:
        level: Minimum log level to emit.
        format: "console" for human-readable output on stderr, "json" for
            JSON lines (to ``file_path`` if given, stdout otherwise), "both"
            for console on stderr plus JSON to ``file_path``.
        file_path: Optional log file; rotated by size.
        max_file_size_mb: Size at which the log file is rotated.
        backup_count: Number of rotated files to keep.
        include_timestamps: Whether to add ISO8601 timestamps.

    Raises:
        ValueError: If format="both" but file_path is not provided.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        handlers.append(logging.StreamHandler(sys.stderr))

    if format in ("json", "both"):
        if file_path is not None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    file_path,
                    maxBytes=max_file_size_mb * 1024 * 1024,
                    backupCount=backup_count,
                    encoding="utf-8",
                )
            )
        else:
            handlers.append(logging.StreamHandler(sys.stdout))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # Loggers are created at import time; not caching lets them pick up
    # this configuration.
    structlog.configure(
        processors=_get_processors(renderer, include_timestamps),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> Any:
    """Get a structlog logger bound to ``component``.

    The returned lazy proxy resolves the current structlog configuration on
    every call, so module-level loggers are safe.
    """
    return structlog.get_logger(component=component, **initial_context)


__all__ = [
    "LogFormat",
    "LogLevel",
    "RelayContext",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "new_connection_id",
    "with_context",
]
