"""Background task helpers.

``spawn`` creates a task whose failure is logged by a done-callback instead
of surfacing as "Task exception was never retrieved" at interpreter exit.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from dcsmax.core.logging import HostLogger


def log_task_exception(
    task: asyncio.Task[Any],
    logger: HostLogger,
    event: str,
) -> BaseException | None:
    """Log the exception of a finished task, if any.

    Returns:
        The exception, or None when the task succeeded or was cancelled.
    """
    if task.cancelled():
        return None
    exc = task.exception()
    if exc is not None:
        logger.error(event, error=str(exc), task_name=task.get_name())
    return exc


def spawn(
    coro: Coroutine[Any, Any, Any],
    logger: HostLogger,
    event: str,
    *,
    name: str | None = None,
) -> asyncio.Task[Any]:
    """Start ``coro`` as a task that logs ``event`` if it dies with an error."""
    task = asyncio.create_task(coro, name=name)
    task.add_done_callback(lambda t: log_task_exception(t, logger, event))
    return task


__all__ = ["log_task_exception", "spawn"]
