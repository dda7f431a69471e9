"""Backup catalog and registry restore.

The backup scripts drop their artifacts into ``Backups/``; the artifact type
is encoded in the name:

====================================  =================
``<dir>/``                            DCS Settings
``*-services-backup.json``            Windows Services
``*-tasks-backup.xml``                Scheduled Tasks
``*-registry-backup.reg``             Registry Keys
====================================  =================

Names starting with ``_`` (the backup log, scratch folders) are internal and
never listed; files of any other shape are ignored.
"""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Any

from dcsmax.core.config import ToolsConfig
from dcsmax.core.errors import ConfigStoreError
from dcsmax.core.logging import get_logger
from dcsmax.host.process import ProcessRunner

_logger = get_logger("backups")

_SUFFIX_TYPES = (
    ("-services-backup.json", "Windows Services"),
    ("-tasks-backup.xml", "Scheduled Tasks"),
    ("-registry-backup.reg", "Registry Keys"),
)


def classify(entry: os.DirEntry[str] | Path) -> str | None:
    """Backup type of a Backups/ entry, or None if it is not a backup."""
    name = entry.name
    if name.startswith("_"):
        return None
    if entry.is_dir():
        return "DCS Settings"
    for suffix, kind in _SUFFIX_TYPES:
        if name.endswith(suffix):
            return kind
    return None


def list_backups(backups_dir: Path) -> list[dict[str, Any]]:
    """Backups, newest first.

    Raises:
        ConfigStoreError: If the backups directory does not exist.
    """
    if not backups_dir.is_dir():
        raise ConfigStoreError(f"Directory not found: {backups_dir}")

    found: list[tuple[float, dict[str, Any]]] = []
    with os.scandir(backups_dir) as entries:
        for entry in entries:
            kind = classify(entry)
            if kind is None:
                continue
            stat = entry.stat()
            found.append((
                stat.st_mtime,
                {
                    "name": entry.name,
                    "type": kind,
                    "date": datetime.fromtimestamp(stat.st_mtime).astimezone().isoformat(),
                    "size": 0 if kind == "DCS Settings" else stat.st_size,
                },
            ))
    found.sort(key=lambda item: item[0], reverse=True)
    return [entry for _, entry in found]


def _ps_quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


class RegistryImporter:
    """Imports a registry backup through an elevated, silent regedit."""

    def __init__(self, backups_dir: Path, runner: ProcessRunner, tools: ToolsConfig) -> None:
        self._backups_dir = backups_dir
        self._runner = runner
        self._tools = tools

    def command(self, reg_file: Path) -> list[str]:
        """PowerShell argv that runs regedit elevated and returns its exit code."""
        quoted_file = _ps_quote(f'"{reg_file}"')
        script = (
            f"$p = Start-Process -FilePath {_ps_quote(self._tools.regedit)} "
            f"-ArgumentList '/s',{quoted_file} "
            "-Verb RunAs -Wait -PassThru; exit $p.ExitCode"
        )
        return [*self._tools.powershell_command, script]

    async def import_file(self, reg_file_name: str) -> tuple[int, Path]:
        """Import ``Backups/<reg_file_name>``. Returns (exit code, full path).

        Raises:
            ConfigStoreError: If the file does not exist.
            ScriptLaunchError: If PowerShell could not be started.
        """
        reg_file = self._backups_dir / reg_file_name
        if not reg_file.is_file():
            raise ConfigStoreError(f"Registry file not found: {reg_file}")
        run = await self._runner.run(self.command(reg_file))
        _logger.info("backups.registry_imported", file=str(reg_file), exit_code=run.code)
        return run.code, reg_file


__all__ = ["RegistryImporter", "classify", "list_backups"]
