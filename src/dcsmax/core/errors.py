"""Exception hierarchy for the DCS-Max host.

All host-specific exceptions inherit from HostError so method adapters can
convert the whole family into failure results in one ``except`` clause.
"""

from __future__ import annotations


class HostError(Exception):
    """Base exception for all host errors."""


class ProjectRootError(HostError):
    """Raised when a configured project root does not exist."""


class ConfigStoreError(HostError):
    """Raised when a config document cannot be read or written.

    The message is user-facing; it is forwarded to the UI verbatim.
    """


class ScriptLaunchError(HostError):
    """Raised when a script or tool cannot be started."""


class OptionsParseError(HostError):
    """Raised when an options.lua file is not a valid Lua table constructor."""


class BridgeError(HostError):
    """Base exception for bridge transport errors."""


class EnvelopeError(BridgeError):
    """Raised when inbound text is not a usable request envelope."""


class BridgeNotRunningError(BridgeError):
    """Raised by the client when no bridge server is reachable."""


__all__ = [
    "BridgeError",
    "BridgeNotRunningError",
    "ConfigStoreError",
    "EnvelopeError",
    "HostError",
    "OptionsParseError",
    "ProjectRootError",
    "ScriptLaunchError",
]
