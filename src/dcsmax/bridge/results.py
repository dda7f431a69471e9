"""Method results and their wire shape.

Every bridge method answers with an object carrying ``success``. A result is
one of two variants:

- ``Ok(payload)``          -> ``{"success": true, **payload}``
- ``Failure(error, extra)`` -> ``{"success": false, "error": error, **extra}``

``Failure.error`` may be None for methods whose failure shape carries other
fields instead (``{"success": false, "cancelled": true}``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Ok:
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return True

    def to_wire(self) -> dict[str, Any]:
        return {"success": True, **self.payload}


@dataclass(frozen=True)
class Failure:
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return False

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"success": False}
        if self.error is not None:
            wire["error"] = self.error
        wire.update(self.extra)
        return wire


Result = Ok | Failure


def failure_from(exc: BaseException) -> Failure:
    """Failure carrying an exception's message."""
    return Failure(str(exc))


__all__ = ["Failure", "Ok", "Result", "failure_from"]
