"""Optimization toggle file.

The optimization scripts read a tab-delimited list of switches::

    # DCS-Max optimization configuration
    R001	+	# Disable Game DVR
    S004	-	# Stop Xbox services

Only lines of that exact shape are toggles. Rewriting flips the ``+`` / ``-``
in place and never touches, drops or reorders any other line.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path

from dcsmax.core.logging import get_logger

_logger = get_logger("toggles")

_TOGGLE_LINE = re.compile(r"^([A-Z][A-Z0-9_]+)(\s+)([+-])(\s+#.*)$")

CATEGORY_TOGGLES: dict[str, str] = {
    "REGISTRY_OPTIMIZATION": "Apply registry optimizations",
    "SERVICES_OPTIMIZATION": "Apply Windows services optimizations",
    "TASKS_OPTIMIZATION": "Disable scheduled tasks",
    "CACHE_CLEANUP": "Clean shader and temp caches",
}
"""Category switches appended when missing, in this order."""

FILE_HEADER = (
    "# DCS-Max optimization configuration\n"
    "# Format: ID<TAB>+|-<TAB># description   (+ enabled, - disabled)\n"
    "# Lines that do not match this format are kept as-is.\n"
)


def _split_ending(line: str) -> tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


def _sign(enabled: bool) -> str:
    return "+" if enabled else "-"


def parse_toggles(text: str) -> dict[str, bool]:
    """Map every toggle id to its state (``+`` enabled)."""
    result: dict[str, bool] = {}
    for line in text.splitlines():
        match = _TOGGLE_LINE.match(line)
        if match:
            result[match.group(1)] = match.group(3) == "+"
    return result


def apply_toggles(text: str, config: Mapping[str, bool]) -> str:
    """Rewrite toggle signs from ``config`` and append missing categories.

    Toggle ids absent from ``config`` keep their sign. Missing category
    lines are appended enabled unless ``config`` says otherwise.
    """
    newline = "\r\n" if "\r\n" in text else "\n"
    seen: set[str] = set()
    out: list[str] = []
    for line in text.splitlines(keepends=True):
        body, ending = _split_ending(line)
        match = _TOGGLE_LINE.match(body)
        if match:
            toggle_id = match.group(1)
            seen.add(toggle_id)
            if toggle_id in config:
                body = (
                    f"{toggle_id}{match.group(2)}{_sign(bool(config[toggle_id]))}{match.group(4)}"
                )
        out.append(body + ending)

    missing = [cat for cat in CATEGORY_TOGGLES if cat not in seen]
    if missing:
        if out and not out[-1].endswith(("\n", "\r")):
            out.append(newline)
        for cat in missing:
            enabled = bool(config.get(cat, True))
            out.append(f"{cat}\t{_sign(enabled)}\t# {CATEGORY_TOGGLES[cat]}{newline}")
    return "".join(out)


def new_toggle_file(config: Mapping[str, bool]) -> str:
    """Contents of a fresh toggle file holding ``config`` plus the categories."""
    lines = [FILE_HEADER]
    for toggle_id, enabled in config.items():
        if toggle_id in CATEGORY_TOGGLES:
            continue
        lines.append(f"{toggle_id}\t{_sign(bool(enabled))}\t# {toggle_id}\n")
    lines.append("\n")
    return apply_toggles("".join(lines), config)


class ToggleFile:
    """The toggle file at a fixed path."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> dict[str, bool]:
        """Current toggles; empty when the file does not exist."""
        if not self.exists:
            return {}
        with open(self.path, encoding="utf-8-sig", newline="") as f:
            return parse_toggles(f.read())

    def write(self, config: Mapping[str, bool]) -> None:
        """Apply ``config`` to the file, creating it when missing."""
        if self.exists:
            with open(self.path, encoding="utf-8-sig", newline="") as f:
                text = apply_toggles(f.read(), config)
        else:
            text = new_toggle_file(config)
            _logger.info("toggles.file_created", path=str(self.path))
        with open(self.path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        _logger.info("toggles.written", path=str(self.path), count=len(config))


__all__ = [
    "CATEGORY_TOGGLES",
    "ToggleFile",
    "apply_toggles",
    "new_toggle_file",
    "parse_toggles",
]
