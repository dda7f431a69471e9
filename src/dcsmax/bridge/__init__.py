"""UI bridge: envelopes, dispatch, the outbound queue and its transports.

The composed host (``BridgeHost``) lives in ``dcsmax.bridge.methods``; the
NDJSON transport in ``dcsmax.bridge.server`` / ``dcsmax.bridge.client``.
"""

from dcsmax.bridge.handler import RequestHandler
from dcsmax.bridge.outbox import Outbox
from dcsmax.bridge.protocol import (
    EventEnvelope,
    RequestEnvelope,
    ResponseEnvelope,
    parse_request,
)
from dcsmax.bridge.results import Failure, Ok, Result

__all__ = [
    "EventEnvelope",
    "Failure",
    "Ok",
    "Outbox",
    "RequestEnvelope",
    "RequestHandler",
    "ResponseEnvelope",
    "Result",
    "parse_request",
]
