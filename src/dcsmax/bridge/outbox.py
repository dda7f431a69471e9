"""Single-consumer outbound queue.

Every envelope the host sends (responses and events alike) is posted to one
``asyncio.Queue`` and written by exactly one drain task, so the UI sees the
envelopes one at a time in the order they were posted. Work done on worker
threads hands its result back to the loop before anything is posted.

The outbox outlives UI connections: a transport attaches its sink when a
UI connects and detaches it on disconnect. Envelopes drained while no sink
is attached are dropped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from dcsmax.bridge.protocol import Envelope, EventEnvelope, EventName, ResponseEnvelope, encode
from dcsmax.core.logging import get_logger

_logger = get_logger("bridge.outbox")

# Receives one encoded envelope (compact JSON, no newline)
Sink = Callable[[str], Awaitable[None]]


class Outbox:
    """Serializes all outbound envelopes through one drain task.

    Usage::

        outbox = Outbox()
        await outbox.start()
        outbox.attach(send_text)
        outbox.emit("logUpdated", {"content": "..."})
        await outbox.shutdown()
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Envelope] = asyncio.Queue()
        # Last attached wins; earlier ones resume when it detaches
        self._sinks: list[Sink] = []
        self._drain_task: asyncio.Task[None] | None = None
        self.dropped = 0

    async def start(self) -> None:
        """Start the drain task on the running loop."""
        if self._drain_task is not None:
            return
        self._drain_task = asyncio.create_task(self._drain_loop(), name="bridge-outbox-drain")

    @property
    def running(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    @property
    def has_sink(self) -> bool:
        return bool(self._sinks)

    def attach(self, sink: Sink) -> None:
        """Route envelopes to ``sink`` until it detaches or another sink attaches."""
        if self._sinks and self._sinks[-1] is not sink:
            _logger.info("outbox.sink_replaced", attached=len(self._sinks) + 1)
        if sink in self._sinks:
            self._sinks.remove(sink)
        self._sinks.append(sink)

    def detach(self, sink: Sink) -> None:
        """Forget ``sink``; the previously attached sink (if any) takes over."""
        if sink in self._sinks:
            self._sinks.remove(sink)

    def post(self, envelope: Envelope) -> None:
        """Queue an envelope. Must be called on the outbox's loop."""
        self._queue.put_nowait(envelope)

    def emit(self, event: EventName, data: Any) -> None:
        self.post(EventEnvelope(event=event, data=data))

    def respond(self, request_id: int, result: Any) -> None:
        self.post(ResponseEnvelope(id=request_id, result=result))

    async def flush(self) -> None:
        """Wait until everything posted so far has been handed to the sink."""
        await self._queue.join()

    async def shutdown(self) -> None:
        """Deliver what is queued, then stop the drain task."""
        if self._drain_task is None:
            return
        if not self._drain_task.done():
            await self.flush()
        self._drain_task.cancel()
        try:
            await self._drain_task
        except asyncio.CancelledError:
            pass
        self._drain_task = None
        _logger.debug("outbox.shutdown", dropped=self.dropped)

    async def _drain_loop(self) -> None:
        while True:
            envelope = await self._queue.get()
            try:
                await self._deliver(envelope)
            finally:
                self._queue.task_done()

    async def _deliver(self, envelope: Envelope) -> None:
        sink = self._sinks[-1] if self._sinks else None
        if sink is None:
            self.dropped += 1
            _logger.debug("outbox.dropped_no_sink", envelope=type(envelope).__name__)
            return
        try:
            await sink(encode(envelope))
        except Exception:
            self.dropped += 1
            _logger.warning("outbox.send_failed", exc_info=True)


__all__ = ["Outbox", "Sink"]
