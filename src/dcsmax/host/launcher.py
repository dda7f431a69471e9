"""Launching VR runtimes and DCS for benchmark runs.

A benchmark run starts the headset's runtime, then DCS with the benchmark
mission, then restarts the mission (Shift+R) between passes. Each launch is
skipped when the program is already running.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import psutil

from dcsmax.core.config import ToolsConfig
from dcsmax.core.errors import ConfigStoreError, ScriptLaunchError
from dcsmax.core.logging import get_logger
from dcsmax.host.process import ProcessRunner

_logger = get_logger("launcher")

DCS_PROCESS = "DCS.exe"

VR_PROCESSES: dict[str, tuple[str, ...]] = {
    "pimax": ("PimaxClient.exe", "DeviceSetting.exe", "pi_server.exe"),
    "meta": ("OVRServer_x64.exe", "OculusClient.exe"),
    "steamvr": ("vrserver.exe", "vrmonitor.exe"),
    "varjo": ("VarjoBase.exe",),
    "wmr": ("MixedRealityPortal.exe",),
}
"""Runtime processes per VR vendor; any one running counts as started."""

_VENDOR_ALIASES = {
    "oculus": "meta",
    "quest": "meta",
    "valve": "steamvr",
    "index": "steamvr",
    "htc": "steamvr",
    "vive": "steamvr",
    "windows mixed reality": "wmr",
    "reverb": "wmr",
}

MISSION_RESTART_SCRIPT = (
    "$wshell = New-Object -ComObject WScript.Shell; "
    "if (-not $wshell.AppActivate({pid})) {{ exit 2 }}; "
    "Start-Sleep -Milliseconds 300; "
    "$wshell.SendKeys('+r'); exit 0"
)


def vr_vendor(hardware: str) -> str | None:
    """Map a UI hardware label ("Pimax Crystal", "Meta Quest 3") to a vendor key."""
    label = hardware.lower()
    for vendor in VR_PROCESSES:
        if vendor in label:
            return vendor
    for alias, vendor in _VENDOR_ALIASES.items():
        if alias in label:
            return vendor
    return None


def find_processes(names: Iterable[str]) -> list[psutil.Process]:
    """Running processes whose name matches one of ``names`` (case-insensitive)."""
    wanted = {n.lower() for n in names if n}
    matches: list[psutil.Process] = []
    for proc in psutil.process_iter(["name"]):
        try:
            name = proc.info.get("name") or ""
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        if name.lower() in wanted:
            matches.append(proc)
    return matches


def is_running(names: Iterable[str]) -> bool:
    return bool(find_processes(names))


class Launcher:
    """Starts VR software and DCS detached."""

    def __init__(self, runner: ProcessRunner, tools: ToolsConfig) -> None:
        self._runner = runner
        self._tools = tools

    def launch_vr(self, hardware: str, exe_path: Path) -> bool:
        """Start the VR runtime; returns True if it was already running.

        Raises:
            ConfigStoreError: If the executable does not exist.
            ScriptLaunchError: If it could not be started.
        """
        vendor = vr_vendor(hardware or "")
        names = list(VR_PROCESSES.get(vendor, ())) if vendor else []
        if exe_path.name:
            names.append(exe_path.name)
        if names and is_running(names):
            _logger.info("launcher.vr_already_running", hardware=hardware)
            return True
        if not exe_path.is_file():
            raise ConfigStoreError(f"Executable not found: {exe_path}")
        self._runner.launch_detached([str(exe_path)], cwd=exe_path.parent)
        _logger.info("launcher.vr_started", hardware=hardware, exe=str(exe_path))
        return False

    def launch_dcs(self, dcs_exe: Path, mission: Path) -> bool:
        """Start DCS with a mission; returns True if DCS was already running.

        Raises:
            ConfigStoreError: If DCS or the mission file does not exist.
            ScriptLaunchError: If DCS could not be started.
        """
        if is_running([DCS_PROCESS]):
            _logger.info("launcher.dcs_already_running")
            return True
        if not dcs_exe.is_file():
            raise ConfigStoreError(f"Executable not found: {dcs_exe}")
        if not mission.is_file():
            raise ConfigStoreError(f"Mission not found: {mission}")
        argv = [str(dcs_exe), *self._tools.dcs_mission_args, str(mission)]
        self._runner.launch_detached(argv, cwd=dcs_exe.parent)
        _logger.info("launcher.dcs_started", mission=str(mission))
        return False

    async def restart_mission(self) -> None:
        """Focus DCS and send Shift+R.

        Raises:
            ScriptLaunchError: If DCS is not running or the keystroke failed.
        """
        running = find_processes([DCS_PROCESS])
        if not running:
            raise ScriptLaunchError("DCS is not running")
        pid = running[0].pid
        run = await self._runner.run(
            [*self._tools.powershell_command, MISSION_RESTART_SCRIPT.format(pid=pid)]
        )
        if not run.success:
            detail = run.stderr.strip() or f"exit code {run.code}"
            raise ScriptLaunchError(f"Failed to send Shift+R to DCS: {detail}")
        _logger.info("launcher.mission_restart_sent", pid=pid)


__all__ = [
    "DCS_PROCESS",
    "Launcher",
    "VR_PROCESSES",
    "find_processes",
    "is_running",
    "vr_vendor",
]
