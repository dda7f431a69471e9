"""Best-effort detection of the external tools DCS-Max works with.

Each tool is looked up in the local-machine registry first, then at a few
common install locations, and finally reported as a default guess with
``found: false``. Detection never raises; callers must cope with
``found: false``.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dcsmax.core.errors import ConfigStoreError
from dcsmax.core.logging import get_logger
from dcsmax.host.scripts import expand_windows_vars

_logger = get_logger("probe")


@dataclass(frozen=True)
class RegistryHint:
    """A HKLM value holding an install directory (or the full path).

    ``value`` "" reads the key's default value; ``suffix`` is joined to the
    value to reach the tool itself.
    """

    key: str
    value: str = ""
    suffix: str = ""


@dataclass(frozen=True)
class ToolSpec:
    name: str
    default: str
    registry: tuple[RegistryHint, ...] = ()
    candidates: tuple[str, ...] = field(default_factory=tuple)


TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="dcsExe",
        default=r"C:\Program Files\Eagle Dynamics\DCS World\bin\DCS.exe",
        registry=(
            RegistryHint(r"SOFTWARE\Eagle Dynamics\DCS World", "Path", r"bin\DCS.exe"),
            RegistryHint(r"SOFTWARE\Eagle Dynamics\DCS World OpenBeta", "Path", r"bin\DCS.exe"),
        ),
        candidates=(
            r"C:\Program Files\Eagle Dynamics\DCS World\bin\DCS.exe",
            r"C:\Program Files\Eagle Dynamics\DCS World OpenBeta\bin\DCS.exe",
            r"C:\Program Files (x86)\Steam\steamapps\common\DCSWorld\bin\DCS.exe",
            r"D:\DCS World\bin\DCS.exe",
            r"D:\Eagle Dynamics\DCS World\bin\DCS.exe",
        ),
    ),
    ToolSpec(
        name="dcsSavedGames",
        default=r"%USERPROFILE%\Saved Games\DCS",
        candidates=(
            r"%USERPROFILE%\Saved Games\DCS",
            r"%USERPROFILE%\Saved Games\DCS.openbeta",
        ),
    ),
    ToolSpec(
        name="capframex",
        default=r"C:\Program Files (x86)\CapFrameX\CapFrameX.exe",
        registry=(
            RegistryHint(r"SOFTWARE\CapFrameX", "InstallDir", "CapFrameX.exe"),
        ),
        candidates=(
            r"C:\Program Files (x86)\CapFrameX\CapFrameX.exe",
            r"C:\Program Files\CapFrameX\CapFrameX.exe",
        ),
    ),
    ToolSpec(
        name="autohotkey",
        default=r"C:\Program Files\AutoHotkey\v2\AutoHotkey64.exe",
        registry=(
            RegistryHint(r"SOFTWARE\AutoHotkey", "InstallDir", r"v2\AutoHotkey64.exe"),
        ),
        candidates=(
            r"%ProgramFiles%\AutoHotkey\v2\AutoHotkey64.exe",
            r"%ProgramFiles%\AutoHotkey\v2\AutoHotkey.exe",
            r"%LOCALAPPDATA%\Programs\AutoHotkey\v2\AutoHotkey.exe",
        ),
    ),
    ToolSpec(
        name="pimax",
        default=r"C:\Program Files\Pimax\PimaxClient\pimaxui\PimaxClient.exe",
        registry=(
            RegistryHint(r"SOFTWARE\Pimax\PimaxClient", "InstallPath", r"pimaxui\PimaxClient.exe"),
        ),
        candidates=(
            r"C:\Program Files\Pimax\PimaxClient\pimaxui\PimaxClient.exe",
            r"C:\Program Files\Pimax\Runtime\DeviceSetting.exe",
        ),
    ),
    ToolSpec(
        name="notepadpp",
        default=r"C:\Program Files\Notepad++\notepad++.exe",
        registry=(RegistryHint(r"SOFTWARE\Notepad++", "", "notepad++.exe"),),
        candidates=(
            r"C:\Program Files\Notepad++\notepad++.exe",
            r"C:\Program Files (x86)\Notepad++\notepad++.exe",
        ),
    ),
)


def read_hklm_value(key: str, value: str) -> str | None:
    """A string value from HKLM (64- then 32-bit view); None off Windows."""
    if sys.platform != "win32":
        return None
    import winreg

    for view in (winreg.KEY_WOW64_64KEY, winreg.KEY_WOW64_32KEY):
        try:
            with winreg.OpenKey(
                winreg.HKEY_LOCAL_MACHINE, key, 0, winreg.KEY_READ | view
            ) as handle:
                data, kind = winreg.QueryValueEx(handle, value)
        except OSError:
            continue
        if kind in (winreg.REG_SZ, winreg.REG_EXPAND_SZ) and data:
            return str(data)
    return None


def _join_windows(base: str, suffix: str) -> str:
    if not suffix:
        return base
    return base.rstrip("\\/") + "\\" + suffix


def _first_existing(paths: Iterable[str | None]) -> str | None:
    for path in paths:
        if path and os.path.exists(path):
            return path
    return None


def detect_tool(spec: ToolSpec) -> dict[str, Any]:
    """``{found, path, source}`` for one tool."""
    try:
        registry_paths = []
        for hint in spec.registry:
            base = read_hklm_value(hint.key, hint.value)
            if base:
                registry_paths.append(_join_windows(base, hint.suffix))
        hit = _first_existing(registry_paths)
        if hit:
            return {"found": True, "path": hit, "source": "registry"}

        hit = _first_existing(expand_windows_vars(c) for c in spec.candidates)
        if hit:
            return {"found": True, "path": hit, "source": "filesystem"}
    except Exception:
        _logger.warning("probe.tool_failed", tool=spec.name, exc_info=True)

    default = expand_windows_vars(spec.default) or spec.default
    return {"found": False, "path": default, "source": "default"}


def detect_paths(tools: Iterable[ToolSpec] = TOOLS) -> dict[str, dict[str, Any]]:
    """Detection results for every known tool."""
    results = {spec.name: detect_tool(spec) for spec in tools}
    _logger.info(
        "probe.detected",
        found=[name for name, r in results.items() if r["found"]],
    )
    return results


class SettingsPathsStore:
    """Tool paths chosen in the UI, kept as pretty-printed JSON."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> dict[str, Any]:
        """Saved paths; empty when nothing has been saved.

        Raises:
            ConfigStoreError: If the file exists but is not a JSON object.
        """
        if not self.path.is_file():
            return {}
        with open(self.path, encoding="utf-8-sig") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ConfigStoreError(str(exc)) from exc
        if not isinstance(data, dict):
            raise ConfigStoreError(f"Settings paths file is not an object: {self.path}")
        return data

    def write(self, paths: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(paths, f, indent=2, ensure_ascii=False)
        _logger.info("probe.settings_paths_saved", path=str(self.path))


__all__ = [
    "TOOLS",
    "RegistryHint",
    "SettingsPathsStore",
    "ToolSpec",
    "detect_paths",
    "detect_tool",
    "read_hklm_value",
]
