"""Bridge dispatcher: routes request envelopes to async method handlers.

Handlers are registered by name and called with the request's positional
``args``. Whatever a handler raises is caught here, logged, and answered
with ``{"success": false, "error": <message>}``; nothing a handler does can
take the host down.

Each request is served in its own task so a slow method (a PowerShell
query, a modal dialog) never delays ``stopScript``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from dcsmax.bridge.outbox import Outbox
from dcsmax.bridge.protocol import FIRE_AND_FORGET, RequestEnvelope, parse_request
from dcsmax.bridge.results import Failure, Result
from dcsmax.core.errors import EnvelopeError
from dcsmax.core.logging import RequestContext, get_logger, with_request_context
from dcsmax.core.tasks import spawn

_logger = get_logger("bridge.handler")

# Called with the request's positional args. Fire-and-forget handlers return None.
MethodHandler = Callable[..., Awaitable[Result | None]]


def _error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class RequestHandler:
    """Routes request envelopes to registered handlers and posts the responses.

    Response rules:

    - unknown method: a normal ``Unknown method: <name>`` failure result,
      answered whatever the id
    - fire-and-forget methods and requests with id 0: no success response
    - handler exception: an error response with the request's id, or id 0
      when ``echo_request_id_on_error`` is False
    - unparsable text: an error response with id 0
    """

    def __init__(self, outbox: Outbox, *, echo_request_id_on_error: bool = True) -> None:
        self._outbox = outbox
        self._echo_request_id_on_error = echo_request_id_on_error
        self._methods: dict[str, MethodHandler] = {}
        self._inflight: set[asyncio.Task[Any]] = set()

    def register(self, method: str, handler: MethodHandler) -> None:
        """Register a handler for the given method name."""
        self._methods[method] = handler

    @property
    def methods(self) -> list[str]:
        """Return the list of registered method names."""
        return list(self._methods)

    def submit(self, text: str | bytes, *, transport: str | None = None) -> asyncio.Task[Any] | None:
        """Parse one inbound message and serve it in a new task.

        Returns the task, or None when the text was not a request envelope
        (an id-0 error response has been posted instead).
        """
        try:
            request = parse_request(text)
        except EnvelopeError as exc:
            _logger.warning("bridge.bad_envelope", error=str(exc), transport=transport)
            self._outbox.respond(0, Failure(str(exc)).to_wire())
            return None

        task = spawn(
            self.handle(request, transport=transport),
            _logger,
            "bridge.request_task_died",
            name=f"bridge-request-{request.method}-{request.id}",
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def handle(self, request: RequestEnvelope, *, transport: str | None = None) -> None:
        """Serve one request and post its response (if it gets one)."""
        ctx = RequestContext(request_id=request.id, method=request.method, transport=transport)
        with with_request_context(ctx):
            handler = self._methods.get(request.method)
            if handler is None:
                # Answered even for id 0 and fire-and-forget names
                _logger.warning("bridge.unknown_method")
                self._outbox.respond(
                    request.id, Failure(f"Unknown method: {request.method}").to_wire()
                )
                return
            try:
                result: Result | None = await handler(*request.args)
            except Exception as exc:
                _logger.error(
                    "bridge.request_failed",
                    error=_error_text(exc),
                    exc_info=True,
                )
                reply_id = request.id if self._echo_request_id_on_error else 0
                self._outbox.respond(reply_id, Failure(_error_text(exc)).to_wire())
                return

            if request.method in FIRE_AND_FORGET or request.id == 0:
                return
            self._outbox.respond(request.id, result.to_wire() if result is not None else None)
            _logger.debug("bridge.request_served", success=result is not None and result.success)

    async def drain(self) -> None:
        """Wait for every in-flight request to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def cancel_inflight(self) -> None:
        """Cancel in-flight requests (shutdown)."""
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["MethodHandler", "RequestHandler"]
