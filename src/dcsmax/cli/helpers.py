"""Shared CLI state and helpers.

Global options (``--config``, ``--log-*``) are recorded by the callbacks in
``dcsmax.cli`` into a single ``CliState`` and consumed by the commands
through ``load_host_config`` and ``configure_global_logging``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import typer
from rich.console import Console

from dcsmax.core.config import HostConfig, load_config
from dcsmax.core.logging import configure_logging


@dataclass
class CliState:
    """Global option values for the current invocation."""

    config_file: Path | None = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    log_file: Path | None = None
    log_format: Literal["json", "console", "both"] | None = None
    logging_configured: bool = False


_state = CliState()


def set_config_file(path: Path | None) -> None:
    _state.config_file = path


def set_log_level(level: str) -> None:
    _state.log_level = level.upper()  # type: ignore[assignment]


def set_log_file(path: Path | None) -> None:
    _state.log_file = path


def set_log_format(fmt: str) -> None:
    _state.log_format = fmt  # type: ignore[assignment]


def reset_state() -> None:
    """Forget all global options (used by tests)."""
    global _state
    _state = CliState()


def load_host_config(console: Console) -> HostConfig:
    """Load the host config with CLI overrides applied.

    Raises:
        typer.Exit: If the config file is invalid.
    """
    if _state.config_file is not None and not _state.config_file.exists():
        console.print(f"[red]Config file not found:[/red] {_state.config_file}")
        raise typer.Exit(1)
    try:
        config = load_config(_state.config_file)
    except Exception as e:
        console.print(f"[red]Invalid config:[/red] {e}")
        raise typer.Exit(1) from None

    overrides: dict[str, Any] = {}
    if _state.log_level:
        overrides["log_level"] = _state.log_level
    if _state.log_file:
        overrides["log_file"] = _state.log_file
    if _state.log_format:
        overrides["log_format"] = _state.log_format
    if overrides:
        config = config.model_copy(update=overrides)
    return config


def configure_global_logging(console: Console, config: HostConfig) -> None:
    """Configure logging once per invocation from the effective config.

    Raises:
        typer.Exit: If logging configuration fails.
    """
    if _state.logging_configured:
        return
    try:
        configure_logging(
            level=config.log_level,
            format=config.log_format,
            file_path=config.log_file,
        )
        _state.logging_configured = True
    except ValueError as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def bootstrap(console: Console) -> HostConfig:
    """Load the effective config and configure logging from it."""
    config = load_host_config(console)
    configure_global_logging(console, config)
    return config


def parse_cli_arg(raw: str) -> Any:
    """Decode a ``dcsmax call`` argument: JSON when it parses, else the string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


__all__ = [
    "CliState",
    "bootstrap",
    "configure_global_logging",
    "load_host_config",
    "parse_cli_arg",
    "reset_state",
    "set_config_file",
    "set_log_file",
    "set_log_format",
    "set_log_level",
]
