"""Single-slot log file watcher.

The benchmarking and optimization scripts write progress logs that the UI
shows live. Watching a log emits ``logUpdated {content}`` with the complete
file text once on start and again after every change; no diffs are sent.
Empty content is never emitted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import watchfiles

from dcsmax.bridge.protocol import EventName
from dcsmax.core.logging import get_logger
from dcsmax.core.tasks import spawn
from dcsmax.host.config_store import read_text_shared

_logger = get_logger("log_watcher")


def _read_log(path: Path) -> str:
    try:
        return read_text_shared(path)
    except FileNotFoundError:
        return ""


class LogWatcher:
    """Watches at most one file; starting a new watch replaces the old one.

    Args:
        emit: Posts an event to the UI.
        settle_delay: Seconds to wait after a change before re-reading, so a
            writer mid-flush is not caught with a half line.
        force_polling: Poll instead of using OS notifications.
    """

    def __init__(
        self,
        emit: Callable[[EventName, Any], None],
        *,
        settle_delay: float = 0.1,
        force_polling: bool = False,
    ) -> None:
        self._emit = emit
        self._settle_delay = settle_delay
        self._force_polling = force_polling
        self._path: Path | None = None
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        # Held across stop, initial publish and task install so back-to-back
        # watch / stop requests apply in arrival order
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path | None:
        """The watched file, or None."""
        return self._path

    async def start(self, path: Path) -> None:
        """Watch ``path``, replacing any current watch."""
        async with self._lock:
            await self._stop_current()
            if not path.parent.is_dir():
                _logger.warning("log_watcher.directory_missing", path=str(path))
                return

            self._path = path
            await self._publish(path)

            self._stop_event = asyncio.Event()
            self._task = spawn(
                self._watch(path, self._stop_event),
                _logger,
                "log_watcher.task_died",
                name=f"log-watch-{path.name}",
            )
            _logger.info("log_watcher.started", path=str(path))

    async def stop(self) -> None:
        """Stop watching. No-op when nothing is watched."""
        async with self._lock:
            await self._stop_current()

    async def _stop_current(self) -> None:
        task, stop_event = self._task, self._stop_event
        path = self._path
        self._task = None
        self._stop_event = None
        self._path = None
        if stop_event is not None:
            stop_event.set()
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            _logger.info("log_watcher.stopped", path=str(path))

    async def _publish(self, path: Path) -> None:
        try:
            content = await asyncio.to_thread(_read_log, path)
        except OSError as exc:
            _logger.warning("log_watcher.read_failed", path=str(path), error=str(exc))
            return
        if content:
            self._emit("logUpdated", {"content": content})

    async def _watch(self, path: Path, stop_event: asyncio.Event) -> None:
        target = path.resolve()

        def only_target(change: watchfiles.Change, changed: str) -> bool:
            return Path(changed).resolve() == target

        try:
            async for _changes in watchfiles.awatch(
                path.parent,
                watch_filter=only_target,
                stop_event=stop_event,
                recursive=False,
                debounce=200,
                force_polling=self._force_polling,
            ):
                await asyncio.sleep(self._settle_delay)
                await self._publish(path)
        except Exception:
            _logger.warning("log_watcher.watch_error", path=str(path), exc_info=True)


__all__ = ["LogWatcher"]
