"""Loopback TCP server carrying bridge envelopes as NDJSON.

Each line the UI sends is one request envelope; each line the host sends is
one response or event envelope. The newest connection receives everything
the outbox sends; when it goes away the previous connection (usually the
UI itself) takes over again.
"""

from __future__ import annotations

import asyncio

from dcsmax.bridge.methods import BridgeHost
from dcsmax.bridge.results import Failure
from dcsmax.core.logging import get_logger

_logger = get_logger("bridge.server")

DEFAULT_MAX_MESSAGE_BYTES = 16 * 1024 * 1024


class BridgeServer:
    """Async NDJSON server in front of a ``BridgeHost``.

    Parameters
    ----------
    bridge:
        The host whose methods are served and whose outbox is drained
        into the active connection.
    host, port:
        Bind address. Port 0 picks a free port (see ``port`` after start).
    max_message_bytes:
        Longest accepted request line; longer lines close the connection.
    """

    def __init__(
        self,
        bridge: BridgeHost,
        *,
        host: str = "127.0.0.1",
        port: int = 0,
        max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES,
    ) -> None:
        self._bridge = bridge
        self._host = host
        self._port = port
        self._max_message_bytes = max_message_bytes
        self._server: asyncio.Server | None = None
        self._connections: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bind and start accepting connections."""
        self._server = await asyncio.start_server(
            self._accept_connection,
            host=self._host,
            port=self._port,
            limit=self._max_message_bytes,
        )
        _logger.info("bridge.server_started", host=self._host, port=self.port)

    async def stop(self) -> None:
        """Stop accepting, then cancel the open connections."""
        if self._server is None:
            return
        self._server.close()
        for task in self._connections:
            task.cancel()
        if self._connections:
            await asyncio.gather(*self._connections, return_exceptions=True)
        self._connections.clear()
        await self._server.wait_closed()
        self._server = None
        _logger.info("bridge.server_stopped")

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        assert self._server is not None
        await self._server.serve_forever()

    @property
    def is_running(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def port(self) -> int:
        """Bound port (the configured one until started)."""
        if self._server is not None and self._server.sockets:
            return int(self._server.sockets[0].getsockname()[1])
        return self._port

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    async def _accept_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._connections.add(task)
            task.add_done_callback(self._connections.discard)
        await self._handle_connection(reader, writer)

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        peer = writer.get_extra_info("peername") or "unknown"
        outbox = self._bridge.outbox

        async def send(text: str) -> None:
            writer.write(text.encode("utf-8") + b"\n")
            await writer.drain()

        outbox.attach(send)
        _logger.info("bridge.client_connected", peer=str(peer))
        try:
            while True:
                try:
                    line = await reader.readline()
                except (asyncio.LimitOverrunError, ValueError):
                    # Buffer state is unknown after an overrun; drop the client
                    _logger.warning("bridge.message_too_large", peer=str(peer))
                    outbox.respond(0, Failure("Message too large").to_wire())
                    await outbox.flush()
                    break
                if not line:
                    break
                if not line.strip():
                    continue
                self._bridge.submit(line, transport="ndjson")
        except ConnectionResetError:
            _logger.debug("bridge.client_reset", peer=str(peer))
        except asyncio.CancelledError:
            _logger.debug("bridge.client_cancelled", peer=str(peer))
        finally:
            outbox.detach(send)
            try:
                writer.close()
                await writer.wait_closed()
            except (ConnectionError, OSError):
                _logger.debug("bridge.writer_close_failed", peer=str(peer))
            _logger.info("bridge.client_disconnected", peer=str(peer))


__all__ = ["BridgeServer", "DEFAULT_MAX_MESSAGE_BYTES"]
