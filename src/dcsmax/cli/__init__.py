"""DCS-Max CLI.

Global options are handled by the ``main`` callback and recorded in
``helpers``; commands live in ``commands/`` and are registered below.

Package structure:
    cli/
    ├── __init__.py           # app assembly
    ├── helpers.py            # global option state, config/logging bootstrap
    ├── output.py             # rich formatting
    └── commands/
        ├── host.py           # serve, ui
        ├── call.py           # call, status
        └── paths.py          # root, detect-paths
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from dcsmax import __version__

from . import helpers as helpers
from .commands import call, detect_paths, root, serve, status, ui
from .helpers import set_config_file, set_log_file, set_log_format, set_log_level
from .output import console

# =============================================================================
# Typer app definition
# =============================================================================

app = typer.Typer(
    name="dcsmax",
    help="Host process for the DCS-Max web UI",
    add_completion=False,
)


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"DCS-Max host v{__version__}")
        raise typer.Exit()


def config_callback(value: Path | None) -> Path | None:
    if value:
        set_config_file(value)
    return value


def log_level_callback(value: str | None) -> str | None:
    """Set log level from CLI option."""
    if value:
        set_log_level(value)
    return value


def log_file_callback(value: Path | None) -> Path | None:
    """Set log file path from CLI option."""
    if value:
        set_log_file(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    """Set log format from CLI option."""
    if value:
        set_log_format(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    config_file: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            callback=config_callback,
            help="YAML config file (default: ./dcsmax.yaml if present)",
            envvar="DCSMAX_CONFIG",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Path for log file output",
            envvar="DCSMAX_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json, console, or both",
            envvar="DCSMAX_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """DCS-Max host: bridge between the web UI and the optimization scripts."""


# =============================================================================
# Command registration
# =============================================================================

# Servers
app.command()(serve)
app.command()(ui)

# Bridge client
app.command()(call)
app.command()(status)

# Local inspection
app.command()(root)
app.command(name="detect-paths")(detect_paths)


__all__ = ["app", "main", "console"]
