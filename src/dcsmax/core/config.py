"""Configuration models for the DCS-Max host.

Defines Pydantic v2 models for host settings: project layout, the bridge
transports, the log watcher, and the external interpreters used to run the
DCS-Max scripts. Every field has a default so the host runs without a
config file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from dcsmax.core.logging import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_FILE = Path("dcsmax.yaml")
"""Config file picked up from the working directory when --config is not given."""

PROJECT_ROOT_ENV = "DCSMAX_PROJECT_ROOT"
LOG_LEVEL_ENV = "DCSMAX_LOG_LEVEL"

_POWERSHELL = ["powershell.exe", "-NoProfile", "-ExecutionPolicy", "Bypass"]


class BridgeConfig(BaseModel):
    """NDJSON loopback bridge settings.

    The bridge listens on loopback only; the UI is the sole expected peer.
    """

    host: str = Field(
        default="127.0.0.1",
        description="Address the NDJSON bridge binds to",
    )
    port: int = Field(
        default=47815,
        ge=0,
        le=65535,
        description="TCP port for the NDJSON bridge (0 picks a free port)",
    )
    max_message_bytes: int = Field(
        default=16 * 1024 * 1024,
        ge=1024,
        description="Largest single envelope accepted from the UI",
    )
    echo_request_id_on_error: bool = Field(
        default=True,
        description="Answer handler errors with the request's id. "
        "False answers every error with id 0, like the WebView2 host did.",
    )


class LogWatchConfig(BaseModel):
    """Settings for the single-slot log watcher."""

    settle_delay_seconds: float = Field(
        default=0.1,
        ge=0.0,
        description="Delay between a change notification and the re-read",
    )
    force_polling: bool = Field(
        default=False,
        description="Poll instead of using native file notifications "
        "(needed on some network drives)",
    )


class ToolsConfig(BaseModel):
    """Command prefixes for the external interpreters.

    Each prefix is an argv list; the script path and its arguments are
    appended. Overriding them lets the host run against stand-in tools.
    """

    powershell_file: list[str] = Field(
        default_factory=lambda: [*_POWERSHELL, "-File"],
        description="Prefix used to run .ps1 (and unknown) scripts",
    )
    powershell_command: list[str] = Field(
        default_factory=lambda: [*_POWERSHELL, "-Command"],
        description="Prefix used to run inline PowerShell commands",
    )
    cmd: list[str] = Field(
        default_factory=lambda: ["cmd.exe", "/c"],
        description="Prefix used to run .bat and .cmd scripts",
    )
    reg_import: list[str] = Field(
        default_factory=lambda: ["reg.exe", "import"],
        description="Prefix used to import .reg files",
    )
    regedit: str = Field(
        default="regedit.exe",
        description="Registry editor started elevated by importRegistry",
    )
    autohotkey_candidates: list[str] = Field(
        default_factory=lambda: [
            r"%ProgramFiles%\AutoHotkey\v2\AutoHotkey64.exe",
            r"%ProgramFiles%\AutoHotkey\v2\AutoHotkey.exe",
            r"%ProgramFiles(x86)%\AutoHotkey\v2\AutoHotkey.exe",
            r"%LOCALAPPDATA%\Programs\AutoHotkey\v2\AutoHotkey.exe",
        ],
        description="AutoHotkey v2 locations tried in order; %VAR% is expanded",
    )
    autohotkey_fallback: str = Field(
        default="AutoHotkey.exe",
        description="Interpreter name used when no candidate exists (resolved via PATH)",
    )
    dcs_mission_args: list[str] = Field(
        default_factory=lambda: ["--mission"],
        description="Arguments placed before the mission path when launching DCS",
    )
    output_encoding: str = Field(
        default="utf-8",
        description="Encoding used to decode child-process output",
    )

    @field_validator("powershell_file", "powershell_command", "cmd", "reg_import")
    @classmethod
    def _prefix_not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("command prefix must contain at least the executable")
        return v


class WebConfig(BaseModel):
    """Settings for the FastAPI web host that serves the UI."""

    host: str = Field(default="127.0.0.1", description="Address uvicorn binds to")
    port: int = Field(default=47816, ge=0, le=65535, description="HTTP port")
    dist_dir: Path = Field(
        default=Path("ui-app/dist"),
        description="Built web UI, relative to the project root",
    )
    open_browser: bool = Field(
        default=True,
        description="Open the UI in the default browser once the server is up",
    )


class HostConfig(BaseModel):
    """Top-level host configuration.

    Loaded from YAML by ``load_config``. Relative paths are resolved against
    the project root, not the working directory.
    """

    project_root: Path | None = Field(
        default=None,
        description="Explicit project root; skips the marker probe",
    )
    root_marker: str = Field(
        default="Backups",
        description="Directory whose presence identifies the project root",
    )
    root_search_depth: int = Field(
        default=2,
        ge=0,
        description="How many parent directories the root probe climbs",
    )
    backups_dir: Path = Field(
        default=Path("Backups"),
        description="Backup artifacts directory",
    )
    optimization_config: Path = Field(
        default=Path("5-Optimization/optimization-config.txt"),
        description="Optimization toggle file",
    )
    settings_paths_file: Path = Field(
        default=Path("dcs-max-settings.json"),
        description="Where detected / user-chosen tool paths are stored",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level",
    )
    log_file: Path | None = Field(
        default=None,
        description="Optional rotating log file",
    )
    log_format: Literal["console", "json", "both"] = Field(
        default="console",
        description="Log rendering",
    )

    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    log_watch: LogWatchConfig = Field(default_factory=LogWatchConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    web: WebConfig = Field(default_factory=WebConfig)

    config_file: Path | None = Field(
        default=None,
        exclude=True,
        description="File this config was loaded from (set by load_config)",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


def load_config(config_file: Path | None = None) -> HostConfig:
    """Load HostConfig from a YAML file or return defaults.

    ``DCSMAX_PROJECT_ROOT`` and ``DCSMAX_LOG_LEVEL`` override the file.
    """
    if config_file is None and DEFAULT_CONFIG_FILE.exists():
        config_file = DEFAULT_CONFIG_FILE

    data: dict[str, object] = {}
    loaded_from: Path | None = None
    if config_file and config_file.exists():
        import yaml

        with open(config_file, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        loaded_from = config_file.resolve()

    env_root = os.environ.get(PROJECT_ROOT_ENV)
    if env_root:
        data["project_root"] = env_root
    env_level = os.environ.get(LOG_LEVEL_ENV)
    if env_level:
        data["log_level"] = env_level

    config = HostConfig.model_validate(data)
    if loaded_from is not None:
        config.config_file = loaded_from
        _logger.debug("config.loaded", config_file=str(loaded_from))
    return config


__all__ = [
    "BridgeConfig",
    "DEFAULT_CONFIG_FILE",
    "HostConfig",
    "LogWatchConfig",
    "ToolsConfig",
    "WebConfig",
    "load_config",
]
