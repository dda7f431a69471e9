"""Windows system queries and shell actions.

Everything here shells out to PowerShell through ``ToolsConfig`` prefixes,
except the admin check and the "open" helpers which use the OS directly.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
import webbrowser
from datetime import datetime
from pathlib import Path
from typing import Any

from dcsmax.core.config import ToolsConfig
from dcsmax.core.errors import ConfigStoreError, ScriptLaunchError
from dcsmax.core.logging import get_logger
from dcsmax.host.process import CompletedRun, ProcessRunner

_logger = get_logger("system")

UNKNOWN_SYSTEM_INFO: dict[str, Any] = {
    "OS": "Unknown",
    "RAM": 0,
    "CPU": "Unknown",
    "GPU": "Unknown",
    "DCSPath": "",
}

SYSTEM_INFO_SCRIPT = (
    "$ErrorActionPreference = 'SilentlyContinue'; "
    "$os = (Get-CimInstance Win32_OperatingSystem).Caption; "
    "$ram = [Math]::Round((Get-CimInstance Win32_ComputerSystem).TotalPhysicalMemory / 1GB, 0); "
    "$cpu = (Get-CimInstance Win32_Processor).Name; "
    "$gpu = (Get-CimInstance Win32_VideoController | "
    "Where-Object { $_.Name -notmatch 'Microsoft|Basic' } | Select-Object -First 1).Name; "
    "if (-not $gpu) { $gpu = (Get-CimInstance Win32_VideoController | Select-Object -First 1).Name }; "
    "$dcsPath = Join-Path $env:USERPROFILE 'Saved Games\\DCS'; "
    "@{ OS = if ($os) { $os } else { 'Unknown' }; RAM = if ($ram) { $ram } else { 0 }; "
    "CPU = if ($cpu) { $cpu } else { 'Unknown' }; GPU = if ($gpu) { $gpu } else { 'Unknown' }; "
    "DCSPath = $dcsPath } | ConvertTo-Json -Compress"
)

SERVICES_SCRIPT = (
    "Get-Service | Select-Object Name, DisplayName, Status, StartType | ConvertTo-Json"
)

RESTORE_POINT_THROTTLED = "Windows limits restore point creation to once per 24 hours."


def default_restore_point_name(now: datetime | None = None) -> str:
    return "DCS-Max_Backup_" + (now or datetime.now()).strftime("%Y-%m-%d-%H-%M-%S")


def parse_system_info(output: str) -> dict[str, Any]:
    """Decode the CIM script's JSON; unknown values on garbage."""
    try:
        info = json.loads(output.strip())
    except json.JSONDecodeError:
        return dict(UNKNOWN_SYSTEM_INFO)
    if not isinstance(info, dict):
        return dict(UNKNOWN_SYSTEM_INFO)
    return info


def parse_services(output: str) -> list[Any]:
    """Decode ``Get-Service | ConvertTo-Json``; one service comes back as an object."""
    try:
        services = json.loads(output.strip())
    except json.JSONDecodeError:
        return []
    if isinstance(services, dict):
        return [services]
    if isinstance(services, list):
        return services
    return []


def is_admin() -> bool:
    """Whether the host runs elevated (root off Windows)."""
    if sys.platform == "win32":
        import ctypes

        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    return os.geteuid() == 0


class SystemOps:
    """PowerShell-backed system queries."""

    def __init__(self, runner: ProcessRunner, tools: ToolsConfig) -> None:
        self._runner = runner
        self._tools = tools

    async def powershell(self, command: str) -> CompletedRun:
        """Run an inline PowerShell command.

        Raises:
            ScriptLaunchError: If PowerShell could not be started.
        """
        return await self._runner.run([*self._tools.powershell_command, command])

    async def run_script(self, script: Path, args: list[str]) -> CompletedRun:
        """Run a PowerShell script file from its own directory."""
        return await self._runner.run(
            [*self._tools.powershell_file, str(script), *args],
            cwd=script.parent,
        )

    async def system_info(self) -> dict[str, Any]:
        run = await self.powershell(SYSTEM_INFO_SCRIPT)
        return parse_system_info(run.stdout)

    async def services(self) -> list[Any]:
        run = await self.powershell(SERVICES_SCRIPT)
        return parse_services(run.stdout)

    async def create_restore_point(self, name: str | None) -> str:
        """Create a restore point and return its name.

        Raises:
            ScriptLaunchError: If Windows refused; the message says why.
        """
        rp_name = name or default_restore_point_name()
        escaped = rp_name.replace("'", "''")
        run = await self.powershell(
            f"Checkpoint-Computer -Description '{escaped}' -RestorePointType 'MODIFY_SETTINGS'"
        )
        if run.success:
            _logger.info("system.restore_point_created", name=rp_name)
            return rp_name
        if "1058" in run.stderr or "frequency" in run.stderr:
            raise ScriptLaunchError(RESTORE_POINT_THROTTLED)
        raise ScriptLaunchError(run.stderr)


def open_path(path: Path) -> None:
    """Open a file with its associated application.

    Raises:
        ConfigStoreError: If the file does not exist.
    """
    if not path.exists():
        raise ConfigStoreError(f"File not found: {path}")
    if sys.platform == "win32":
        os.startfile(path)  # type: ignore[attr-defined]  # noqa: S606
        return
    opener = "open" if sys.platform == "darwin" else "xdg-open"
    subprocess.Popen(  # noqa: S603
        [opener, str(path)],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )


def open_url(url: str) -> None:
    """Open a URL in the default browser.

    Raises:
        ScriptLaunchError: If no browser could be started.
    """
    if not webbrowser.open(url):
        raise ScriptLaunchError(f"Could not open {url}")


__all__ = [
    "RESTORE_POINT_THROTTLED",
    "SystemOps",
    "UNKNOWN_SYSTEM_INFO",
    "default_restore_point_name",
    "is_admin",
    "open_path",
    "open_url",
    "parse_services",
    "parse_system_info",
]
