"""Structured logging infrastructure for the DCS-Max host.

Provides structured logging using structlog with host-specific context
such as the request id and method currently being served by the bridge.
Supports console and JSON output, optionally to a rotating file.

Example usage:
    from dcsmax.core.logging import configure_logging, get_logger

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("scripts")
    logger.info("session_started", script="5-Optimization/5.1.2-registry-optimize.ps1")

    # Requests served by the bridge carry their id automatically
    with with_request_context(RequestContext(request_id=7, method="listBackups")):
        logger.info("backups_listed")  # Includes request_id, method
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console", "both"]


@dataclass(frozen=True)
class RequestContext:
    """Correlation fields for one bridge request.

    Attributes:
        request_id: The envelope id (0 for fire-and-forget requests).
        method: The bridge method being served.
        transport: Which transport delivered the request ("ndjson", "websocket").
    """

    request_id: int
    method: str
    transport: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "request_id": self.request_id,
            "method": self.method,
        }
        if self.transport is not None:
            result["transport"] = self.transport
        return result


# Task-local so concurrently served requests don't see each other's ids
_current_context: ContextVar[RequestContext | None] = ContextVar(
    "dcsmax_request_context", default=None
)


def get_current_context() -> RequestContext | None:
    """Get the RequestContext of the request being served, if any."""
    return _current_context.get()


@contextmanager
def with_request_context(ctx: RequestContext) -> Iterator[RequestContext]:
    """Set the RequestContext for the duration of a block.

    Every log call inside the block includes the context's fields when the
    ``_add_context`` processor is active.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds an ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds RequestContext fields to log entries.

    Explicitly bound fields take precedence over the context.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


class HostLogger:
    """Logger wrapper around structlog bound to a component name.

    Resolves the structlog logger on every call so loggers created at import
    time still respect ``configure_logging()`` calls made later.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> HostLogger:
        """Create a new logger with additional bound context."""
        new_logger = HostLogger.__new__(HostLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an error with the active exception's traceback."""
        self._get_logger().exception(event, **kw)


def _shared_processors(include_timestamps: bool, include_context: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ])
    return processors


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 10,
    backup_count: int = 3,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure host logging.

    Call once at startup before serving requests.

    Args:
        level: Minimum log level to capture.
        format: "console" for human-readable stderr output, "json" for
            structured output, "both" for console on stderr and JSON in
            ``file_path``.
        file_path: Optional log file; rotated at ``max_file_size_mb``.
        max_file_size_mb: Maximum log file size before rotation (MB).
        backup_count: Number of rotated files to keep.
        include_timestamps: Whether to add ISO8601 timestamps.
        include_context: Whether to add RequestContext fields.

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

    processors = _shared_processors(include_timestamps, include_context)
    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    # cache_logger_on_first_use=False keeps module-level loggers honest
    # when configure_logging() runs after import.
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> HostLogger:
    """Get a logger for a host component (e.g. "bridge.server", "scripts")."""
    return HostLogger(component, **initial_context)


__all__ = [
    "HostLogger",
    "LogFormat",
    "LogLevel",
    "RequestContext",
    "configure_logging",
    "get_current_context",
    "get_logger",
    "with_request_context",
]
