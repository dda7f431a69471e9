"""Wire envelopes exchanged between the DCS-Max UI and the host.

Three envelope shapes travel over every transport:

- request  ``{"id": 3, "method": "listBackups", "args": []}``
- response ``{"id": 3, "result": {...}}``
- event    ``{"event": "scriptOutput", "data": {...}}``

On the NDJSON transport each envelope is one JSON object terminated by
``\\n``; on the WebSocket transport each envelope is one text message.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from dcsmax.core.errors import EnvelopeError

EventName = Literal["scriptOutput", "scriptComplete", "logUpdated"]

# Methods that never answer with a success response
FIRE_AND_FORGET = frozenset({
    "executeScriptStream",
    "stopScript",
    "watchLog",
    "stopWatchLog",
})


class RequestEnvelope(BaseModel):
    """Inbound request.

    ``id`` 0 (or absent) marks a fire-and-forget request; missing ``args``
    means no arguments.
    """

    id: int = 0
    method: str
    args: list[Any] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _null_id(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("args", mode="before")
    @classmethod
    def _null_args(cls, v: Any) -> Any:
        return [] if v is None else v


class ResponseEnvelope(BaseModel):
    """Outbound response correlated to a request by ``id``."""

    id: int
    result: Any = None


class EventEnvelope(BaseModel):
    """Outbound, uncorrelated event."""

    event: EventName
    data: Any = None


Envelope = ResponseEnvelope | EventEnvelope


def parse_request(text: str | bytes) -> RequestEnvelope:
    """Decode one request envelope.

    Raises:
        EnvelopeError: If the text is not JSON or not a request object.
    """
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise EnvelopeError(f"Invalid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise EnvelopeError("Request must be a JSON object")
    try:
        return RequestEnvelope.model_validate(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first["loc"]) or "request"
        raise EnvelopeError(f"Invalid request envelope: {loc}: {first['msg']}") from exc


def encode(envelope: Envelope) -> str:
    """Serialize an outbound envelope to compact JSON (no trailing newline)."""
    return envelope.model_dump_json()


__all__ = [
    "FIRE_AND_FORGET",
    "Envelope",
    "EventEnvelope",
    "EventName",
    "RequestEnvelope",
    "ResponseEnvelope",
    "encode",
    "parse_request",
]
