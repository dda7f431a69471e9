"""Async NDJSON client for the bridge server.

Two call patterns:

- ``call(method, *args)``: send a request and return the matching response's
  result. Events arriving meanwhile go to ``on_event``.
- ``follow(method, *args)``: send a request and yield every envelope that
  arrives until a terminating event (``scriptComplete`` by default) or an
  error response for the request.

Used by the ``dcsmax call`` command and the tests.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Collection
from contextlib import asynccontextmanager
from typing import Any

from dcsmax.bridge.protocol import FIRE_AND_FORGET, RequestEnvelope
from dcsmax.core.errors import BridgeNotRunningError
from dcsmax.core.logging import get_logger

_logger = get_logger("bridge.client")

EventCallback = Callable[[dict[str, Any]], None]


class BridgeClient:
    """Client for a ``BridgeServer``.

    Parameters
    ----------
    host, port:
        Where the bridge listens.
    timeout:
        Seconds to wait for a response before raising ``TimeoutError``.
        None waits forever.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 47815,
        *,
        timeout: float | None = 60.0,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._next_id = 0

    def _next_request_id(self) -> int:
        self._next_id += 1
        return self._next_id

    @asynccontextmanager
    async def _connect(
        self,
    ) -> AsyncIterator[tuple[asyncio.StreamReader, asyncio.StreamWriter]]:
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self._host, self._port, limit=16 * 1024 * 1024),
                timeout=5.0,
            )
        except TimeoutError as exc:
            raise BridgeNotRunningError(
                f"Timeout connecting to bridge at {self._host}:{self._port}"
            ) from exc
        except OSError as exc:
            raise BridgeNotRunningError(
                f"Cannot connect to bridge at {self._host}:{self._port}: {exc}"
            ) from exc
        try:
            yield reader, writer
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except (ConnectionError, OSError):
                _logger.debug("bridge.client_close_failed", exc_info=True)

    async def _send(self, writer: asyncio.StreamWriter, method: str, args: tuple[Any, ...]) -> int:
        request_id = self._next_request_id()
        request = RequestEnvelope(id=request_id, method=method, args=list(args))
        writer.write(request.model_dump_json().encode("utf-8") + b"\n")
        await writer.drain()
        return request_id

    async def _read(self, reader: asyncio.StreamReader, timeout: float | None) -> dict[str, Any]:
        line = await asyncio.wait_for(reader.readline(), timeout=timeout)
        if not line:
            raise BridgeNotRunningError("Bridge closed the connection")
        message: dict[str, Any] = json.loads(line)
        return message

    async def call(
        self,
        method: str,
        *args: Any,
        on_event: EventCallback | None = None,
    ) -> Any:
        """Send a request and return the result of its response.

        Raises:
            BridgeNotRunningError: bridge unreachable or connection closed
            TimeoutError: no response within the timeout
            ValueError: ``method`` never answers (use ``follow``)
        """
        if method in FIRE_AND_FORGET:
            raise ValueError(f"{method} sends no response; use follow()")
        async with self._connect() as (reader, writer):
            request_id = await self._send(writer, method, args)
            while True:
                message = await self._read(reader, self._timeout)
                if "event" in message:
                    if on_event is not None:
                        on_event(message)
                    continue
                if message.get("id") in (request_id, 0):
                    return message.get("result")

    async def notify(self, method: str, *args: Any) -> None:
        """Send a request without waiting for anything back."""
        async with self._connect() as (_reader, writer):
            await self._send(writer, method, args)

    async def follow(
        self,
        method: str,
        *args: Any,
        until: Collection[str] = ("scriptComplete",),
    ) -> AsyncIterator[dict[str, Any]]:
        """Send a request and yield the envelopes that follow it.

        Stops after yielding an event named in ``until``, or a response to
        this request (an error for fire-and-forget methods).
        """
        async with self._connect() as (reader, writer):
            request_id = await self._send(writer, method, args)
            while True:
                message = await self._read(reader, None)
                yield message
                if message.get("event") in until:
                    return
                if "event" not in message and message.get("id") in (request_id, 0):
                    return

    async def is_running(self) -> bool:
        """Whether something accepts connections on the bridge port."""
        try:
            _reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self._host, self._port),
                timeout=2.0,
            )
        except (TimeoutError, OSError):
            return False
        writer.close()
        await writer.wait_closed()
        return True


__all__ = ["BridgeClient", "EventCallback"]
