"""Tests for dcsmax.host.backups."""

from __future__ import annotations

import os
import sys
from datetime import datetime
from pathlib import Path

import pytest

from dcsmax.core.config import ToolsConfig
from dcsmax.core.errors import ConfigStoreError
from dcsmax.host.backups import RegistryImporter, classify, list_backups
from dcsmax.host.process import ProcessRunner


def _touch(path: Path, mtime: float, content: str = "x") -> None:
    if path.suffix or not content:
        path.write_text(content)
    os.utime(path, (mtime, mtime))


class TestListBackups:
    """Tests for the backup catalog."""

    def test_types_and_order(self, tmp_path: Path) -> None:
        backups = tmp_path / "Backups"
        backups.mkdir()
        _touch(backups / "foo-services-backup.json", 1_700_000_300)
        _touch(backups / "bar-registry-backup.reg", 1_700_000_200)
        (backups / "baz").mkdir()
        os.utime(backups / "baz", (1_700_000_100, 1_700_000_100))

        result = list_backups(backups)

        assert [(b["name"], b["type"]) for b in result] == [
            ("foo-services-backup.json", "Windows Services"),
            ("bar-registry-backup.reg", "Registry Keys"),
            ("baz", "DCS Settings"),
        ]

    def test_hidden_and_unrelated_excluded(self, tmp_path: Path) -> None:
        (tmp_path / "_hidden").mkdir()
        (tmp_path / "_old-registry-backup.reg").write_text("x")
        (tmp_path / "notes.txt").write_text("x")
        (tmp_path / "t-tasks-backup.xml").write_text("<x/>")

        result = list_backups(tmp_path)

        assert [(b["name"], b["type"]) for b in result] == [
            ("t-tasks-backup.xml", "Scheduled Tasks"),
        ]

    def test_entry_fields(self, tmp_path: Path) -> None:
        _touch(tmp_path / "a-services-backup.json", 1_700_000_000, content="12345")
        (tmp_path / "dcs").mkdir()

        by_name = {b["name"]: b for b in list_backups(tmp_path)}

        services = by_name["a-services-backup.json"]
        assert services["size"] == 5
        assert datetime.fromisoformat(services["date"]).timestamp() == 1_700_000_000
        assert by_name["dcs"]["size"] == 0

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigStoreError, match="Directory not found"):
            list_backups(tmp_path / "Backups")

    def test_classify_paths(self, tmp_path: Path) -> None:
        reg = tmp_path / "x-registry-backup.reg"
        reg.write_text("")
        assert classify(reg) == "Registry Keys"
        assert classify(tmp_path) == "DCS Settings"


class TestRegistryImporter:
    """Tests for the elevated regedit import."""

    def test_command_runs_regedit_elevated(self, tmp_path: Path) -> None:
        importer = RegistryImporter(tmp_path, ProcessRunner(), ToolsConfig())
        argv = importer.command(tmp_path / "it's-registry-backup.reg")

        assert argv[:-1] == ToolsConfig().powershell_command
        script = argv[-1]
        assert "Start-Process -FilePath 'regedit.exe'" in script
        assert "-Verb RunAs -Wait -PassThru" in script
        assert "'/s'" in script
        assert "it''s-registry-backup.reg" in script
        assert script.endswith("exit $p.ExitCode")

    @pytest.mark.asyncio
    async def test_import_missing_file(self, tmp_path: Path) -> None:
        importer = RegistryImporter(tmp_path, ProcessRunner(), ToolsConfig())
        with pytest.raises(ConfigStoreError, match="Registry file not found"):
            await importer.import_file("nope.reg")

    @pytest.mark.asyncio
    async def test_import_returns_exit_code(self, tmp_path: Path) -> None:
        reg = tmp_path / "a-registry-backup.reg"
        reg.write_text("Windows Registry Editor Version 5.00\n")
        tools = ToolsConfig(powershell_command=[sys.executable, "-c"])
        importer = RegistryImporter(tmp_path, ProcessRunner(), tools)
        importer.command = lambda reg_file: [sys.executable, "-c", "import sys; sys.exit(5)"]  # type: ignore[method-assign]

        code, path = await importer.import_file(reg.name)

        assert code == 5
        assert path == reg
