"""Rich output formatting for the DCS-Max CLI."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.table import Table

# Command modules print through this console
console = Console()

SOURCE_COLORS = {
    "registry": "green",
    "filesystem": "cyan",
    "default": "yellow",
}

STREAM_COLORS = {
    "stdout": "white",
    "stderr": "red",
}


def paths_table(results: dict[str, dict[str, Any]]) -> Table:
    """Table of ``detect_paths`` results."""
    table = Table(title="Detected tools", show_header=True, header_style="bold")
    table.add_column("Tool", style="bold")
    table.add_column("Found")
    table.add_column("Source")
    table.add_column("Path", overflow="fold")
    for name, result in results.items():
        source = result.get("source", "default")
        color = SOURCE_COLORS.get(source, "white")
        table.add_row(
            name,
            "[green]yes[/green]" if result.get("found") else "[yellow]no[/yellow]",
            f"[{color}]{source}[/{color}]",
            str(result.get("path", "")),
        )
    return table


def print_envelope(message: dict[str, Any], out: Console | None = None) -> None:
    """Print one envelope received from the bridge.

    Script output is echoed as plain text; everything else as JSON.
    """
    out = out or console
    if message.get("event") == "scriptOutput":
        data = message.get("data") or {}
        color = STREAM_COLORS.get(data.get("type", "stdout"), "white")
        out.print(str(data.get("data", "")), style=color, end="", markup=False, highlight=False)
        return
    out.print_json(json.dumps(message))


__all__ = ["console", "paths_table", "print_envelope"]
