"""End-to-end tests for the bridge methods served by BridgeHost.

Scripts and inline commands run with the current Python interpreter (see the
``python_tools`` fixture), so ``.ps1`` stand-ins are Python files.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path

import pytest

from dcsmax.bridge.protocol import FIRE_AND_FORGET
from dcsmax.host import dialogs

BRIDGE_JS = Path(__file__).parent.parent / "src" / "dcsmax" / "web" / "static" / "bridge.js"


class TestMethodTable:
    """The method table matches what the UI calls."""

    @pytest.mark.asyncio
    async def test_all_ui_methods_registered(self, open_bridge) -> None:
        js = BRIDGE_JS.read_text(encoding="utf-8")
        listed = set(re.findall(r"'([A-Za-z]+)'", js.split("var METHODS = [", 1)[1].split("];", 1)[0]))
        async with open_bridge() as h:
            methods = set(h.bridge.handler.methods)
        assert listed | FIRE_AND_FORGET == methods
        assert len(methods) == 33


class TestConfigDocuments:
    """Tests for INI / JSON / directory / log methods."""

    @pytest.mark.asyncio
    async def test_ini_round_trip(self, open_bridge, project_root: Path) -> None:
        async with open_bridge() as h:
            written = await h.call("writeIniConfig", "settings.ini", "[A]\nk = v\n")
            result = await h.call("readIniConfig", "settings.ini")
        assert written == {"success": True}
        assert result == {
            "success": True,
            "content": "[A]\nk = v\n",
            "parsed": {"A": {"k": "v"}},
        }
        assert (project_root / "settings.ini").read_bytes() == b"[A]\nk = v\n"

    @pytest.mark.asyncio
    async def test_read_missing_ini_fails(self, open_bridge) -> None:
        async with open_bridge() as h:
            result = await h.call("readIniConfig", "missing.ini")
        assert result["success"] is False
        assert "missing.ini" in result["error"]

    @pytest.mark.asyncio
    async def test_json_round_trip(self, open_bridge, project_root: Path) -> None:
        async with open_bridge() as h:
            assert await h.call("writeJsonConfig", "cfg.json", {"a": [1, 2]}) == {"success": True}
            result = await h.call("readJsonConfig", "cfg.json")
        assert result["success"] is True
        assert result["data"] == {"a": [1, 2]}
        assert json.loads(result["content"]) == {"a": [1, 2]}

    @pytest.mark.asyncio
    async def test_read_missing_json(self, open_bridge, project_root: Path) -> None:
        async with open_bridge() as h:
            result = await h.call("readJsonConfig", "nope.json")
        assert result == {
            "success": False,
            "error": f"File not found: {project_root / 'nope.json'}",
        }

    @pytest.mark.asyncio
    async def test_list_directory(self, open_bridge, project_root: Path) -> None:
        (project_root / "a.txt").write_text("x")
        async with open_bridge() as h:
            result = await h.call("listDirectory", ".")
        assert result["success"] is True
        assert result["files"] == ["a.txt"]
        assert result["directories"] == ["5-Optimization", "Backups"]

    @pytest.mark.asyncio
    async def test_read_log_creates_parent(self, open_bridge, project_root: Path) -> None:
        async with open_bridge() as h:
            result = await h.call("readLog", "logs/run.log")
        assert result == {"success": True, "content": ""}
        assert (project_root / "logs").is_dir()


class TestOptimizationToggles:
    """Tests for the optimization toggle methods."""

    @pytest.mark.asyncio
    async def test_missing_file(self, open_bridge) -> None:
        async with open_bridge() as h:
            result = await h.call("readOptimizationConfig")
        assert result == {"success": True, "exists": False, "config": {}}

    @pytest.mark.asyncio
    async def test_write_then_read(self, open_bridge, project_root: Path) -> None:
        toggle_file = project_root / "5-Optimization" / "optimization-config.txt"
        toggle_file.write_text("R001\t+\t# Disable Game DVR\n", encoding="utf-8")
        async with open_bridge() as h:
            assert await h.call("writeOptimizationConfig", {"R001": False}) == {"success": True}
            result = await h.call("readOptimizationConfig")
        assert result["exists"] is True
        assert result["config"]["R001"] is False
        assert toggle_file.read_text(encoding="utf-8").startswith("R001\t-\t# Disable Game DVR\n")

    @pytest.mark.asyncio
    async def test_config_path(self, open_bridge, project_root: Path) -> None:
        async with open_bridge() as h:
            result = await h.call("getOptimizationConfigPath")
        assert result == {
            "success": True,
            "path": str(project_root / "5-Optimization" / "optimization-config.txt"),
            "exists": False,
        }


class TestScripts:
    """Tests for executeScript, executeScriptStream, stopScript, executeCommand."""

    @pytest.mark.asyncio
    async def test_execute_script_success(self, open_bridge, write_script) -> None:
        write_script("2-Test/ok.ps1", "import sys\nprint('args', sys.argv[1:])\n")
        async with open_bridge() as h:
            result = await h.call("executeScript", "2-Test/ok.ps1", ["-Quick", "1"])
        assert result["success"] is True
        assert result["code"] == 0
        assert result["stdout"].strip() == "args ['-Quick', '1']"
        assert result["stderr"] == ""

    @pytest.mark.asyncio
    async def test_execute_script_nonzero_exit(self, open_bridge, write_script) -> None:
        write_script("fail.ps1", "import sys\nsys.stderr.write('bad')\nsys.exit(2)\n")
        async with open_bridge() as h:
            result = await h.call("executeScript", "fail.ps1")
        assert result == {"success": False, "code": 2, "stdout": "", "stderr": "bad"}

    @pytest.mark.asyncio
    async def test_execute_script_spawn_failure(self, open_bridge, host_config, tmp_path) -> None:
        tools = host_config.tools.model_copy(
            update={"powershell_file": [str(tmp_path / "no-such-interpreter")]}
        )
        config = host_config.model_copy(update={"tools": tools})
        async with open_bridge(config) as h:
            result = await h.call("executeScript", "x.ps1")
        assert result["success"] is False
        assert result["error"]
        assert result["stdout"] == "" and result["stderr"] == ""

    @pytest.mark.asyncio
    async def test_stream_emits_output_then_complete(self, open_bridge, write_script) -> None:
        write_script(
            "stream.ps1",
            "import sys\nprint('one', flush=True)\nsys.stderr.write('two\\n')\nsys.exit(3)\n",
        )
        async with open_bridge() as h:
            await h.notify("executeScriptStream", "stream.ps1", [])
            complete = await h.wait_for_event("scriptComplete")
            outputs = h.events("scriptOutput")

            assert complete == [{"code": 3, "stdout": "one\n", "stderr": "two\n"}]
            assert {"type": "stdout", "data": "one\n"} in outputs
            assert {"type": "stderr", "data": "two\n"} in outputs
            assert h.messages[-1]["event"] == "scriptComplete"
            assert not [m for m in h.messages if "id" in m]

    @pytest.mark.asyncio
    async def test_stop_script_twice_without_process(self, open_bridge) -> None:
        async with open_bridge() as h:
            await h.notify("stopScript")
            await h.notify("stopScript")
            assert h.messages == []

    @pytest.mark.asyncio
    async def test_execute_command(self, open_bridge) -> None:
        async with open_bridge() as h:
            ok = await h.call("executeCommand", "print(40 + 2)")
            failed = await h.call("executeCommand", "import sys; sys.exit(4)")
        assert ok["success"] is True
        assert ok["exitCode"] == 0
        assert ok["stdout"].strip() == "42"
        assert failed["success"] is False
        assert failed["exitCode"] == 4

    @pytest.mark.asyncio
    async def test_back_to_back_streams_leave_no_orphan(
        self, open_bridge, write_script, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        write_script("first.ps1", "import time\ntime.sleep(60)\n")
        write_script("second.ps1", "print('second')\n")
        async with open_bridge() as h:
            spawned = []
            original = h.bridge.runner.spawn_piped

            async def recording(*args, **kwargs):
                proc = await original(*args, **kwargs)
                spawned.append(proc)
                return proc

            monkeypatch.setattr(h.bridge.runner, "spawn_piped", recording)

            await h.notify_many(
                ("executeScriptStream", "first.ps1", []),
                ("executeScriptStream", "second.ps1", []),
            )
            complete = await h.wait_for_event("scriptComplete")

            assert complete == [{"code": 0, "stdout": "second\n", "stderr": ""}]
            assert len(spawned) == 2
            assert spawned[0].returncode is not None

    @pytest.mark.asyncio
    async def test_stop_sent_right_after_stream(self, open_bridge, write_script) -> None:
        write_script("long.ps1", "import time\ntime.sleep(60)\n")
        async with open_bridge() as h:
            await h.notify_many(("executeScriptStream", "long.ps1", []), ("stopScript",))
            complete = await h.wait_for_event("scriptComplete")

            assert len(complete) == 1
            assert complete[0]["code"] != 0
            assert not h.bridge.scripts.active


class TestBackups:
    """Tests for listBackups and importRegistry."""

    @pytest.mark.asyncio
    async def test_list_empty(self, open_bridge) -> None:
        async with open_bridge() as h:
            assert await h.call("listBackups") == {"success": True, "backups": []}

    @pytest.mark.asyncio
    async def test_list_missing_directory(self, open_bridge, project_root: Path) -> None:
        (project_root / "Backups").rmdir()
        async with open_bridge() as h:
            result = await h.call("listBackups")
        assert result["success"] is False
        assert result["error"].startswith("Directory not found")

    @pytest.mark.asyncio
    async def test_import_missing_file(self, open_bridge) -> None:
        async with open_bridge() as h:
            result = await h.call("importRegistry", "nope-registry-backup.reg")
        assert result["success"] is False
        assert result["error"].startswith("Registry file not found")

    @pytest.mark.asyncio
    async def test_import_failure_reports_exit_code(self, open_bridge, project_root: Path) -> None:
        reg = project_root / "Backups" / "a-registry-backup.reg"
        reg.write_text("Windows Registry Editor Version 5.00\n")
        async with open_bridge() as h:
            # The PowerShell text is not valid Python, so the stand-in exits 1
            result = await h.call("importRegistry", reg.name)
        assert result == {
            "success": False,
            "error": "Registry import failed (exit code 1)",
            "file": str(reg),
        }

    @pytest.mark.asyncio
    async def test_import_success(self, open_bridge, project_root: Path, monkeypatch) -> None:
        import sys

        from dcsmax.host.backups import RegistryImporter

        reg = project_root / "Backups" / "a-registry-backup.reg"
        reg.write_text("Windows Registry Editor Version 5.00\n")
        monkeypatch.setattr(
            RegistryImporter, "command", lambda self, reg_file: [sys.executable, "-c", "pass"]
        )
        async with open_bridge() as h:
            result = await h.call("importRegistry", reg.name)
        assert result == {"success": True, "file": str(reg)}


class TestSystemMethods:
    """Tests for root / admin / dialog / settings methods."""

    @pytest.mark.asyncio
    async def test_project_root(self, open_bridge, project_root: Path) -> None:
        async with open_bridge() as h:
            assert await h.call("getProjectRoot") == {"success": True, "path": str(project_root)}

    @pytest.mark.asyncio
    async def test_is_admin_is_boolean(self, open_bridge) -> None:
        async with open_bridge() as h:
            result = await h.call("isAdmin")
        assert result["success"] is True
        assert isinstance(result["isAdmin"], bool)

    @pytest.mark.asyncio
    async def test_is_admin_failure_shape(self, open_bridge, monkeypatch) -> None:
        from dcsmax.host import system

        def broken() -> bool:
            raise OSError("no shell32")

        monkeypatch.setattr(system, "is_admin", broken)
        async with open_bridge() as h:
            assert await h.call("isAdmin") == {"success": False, "isAdmin": False}

    @pytest.mark.asyncio
    async def test_browse_cancelled(self, open_bridge, monkeypatch) -> None:
        monkeypatch.setattr(dialogs, "_ask", lambda kind, title, filetypes: "")
        async with open_bridge() as h:
            file_result = await h.call("browseForFile", "Pick", "Lua (*.lua)|*.lua")
            folder_result = await h.call("browseForFolder")
        assert file_result == {"success": False, "cancelled": True}
        assert folder_result == {"success": False, "cancelled": True}

    @pytest.mark.asyncio
    async def test_browse_chosen(self, open_bridge, monkeypatch) -> None:
        monkeypatch.setattr(dialogs, "_ask", lambda kind, title, filetypes: "C:/x/options.lua")
        async with open_bridge() as h:
            result = await h.call("browseForFile")
        assert result == {"success": True, "path": "C:/x/options.lua"}

    @pytest.mark.asyncio
    async def test_open_missing_file(self, open_bridge) -> None:
        async with open_bridge() as h:
            result = await h.call("openFile", "missing.txt")
        assert result["success"] is False
        assert result["error"].startswith("File not found")

    @pytest.mark.asyncio
    async def test_settings_paths_round_trip(self, open_bridge, project_root: Path) -> None:
        async with open_bridge() as h:
            assert await h.call("readSettingsPaths") == {"success": True, "paths": {}}
            await h.call("writeSettingsPaths", {"dcsExe": "D:/DCS/bin/DCS.exe"})
            result = await h.call("readSettingsPaths")
        assert result == {"success": True, "paths": {"dcsExe": "D:/DCS/bin/DCS.exe"}}
        assert (project_root / "dcs-max-settings.json").is_file()

    @pytest.mark.asyncio
    async def test_detect_paths_never_fails(self, open_bridge) -> None:
        async with open_bridge() as h:
            result = await h.call("detectPaths")
        assert result["success"] is True
        assert set(result["paths"]) >= {"dcsExe", "dcsSavedGames", "autohotkey"}
        for entry in result["paths"].values():
            assert set(entry) == {"found", "path", "source"}

    @pytest.mark.asyncio
    async def test_read_options_lua(self, open_bridge, project_root: Path) -> None:
        (project_root / "options.lua").write_text(
            'options = {\n\t["graphics"] = {\n\t\t["visibRange"] = "High",\n\t},\n}\n'
        )
        async with open_bridge() as h:
            result = await h.call("readOptionsLua", "options.lua")
            missing = await h.call("readOptionsLua", "none.lua")
        assert result == {"success": True, "settings": {"graphics": {"visibRange": "High"}}}
        assert missing["success"] is False
        assert missing["error"].startswith("File not found")

    @pytest.mark.asyncio
    async def test_launch_dcs_missing_exe(self, open_bridge, monkeypatch, tmp_path: Path) -> None:
        from dcsmax.host import launcher

        monkeypatch.setattr(launcher, "is_running", lambda names: False)
        async with open_bridge() as h:
            result = await h.call(
                "launchDCSWithMission", str(tmp_path / "DCS.exe"), "mission.miz"
            )
        assert result["success"] is False
        assert result["error"].startswith("Executable not found")

    @pytest.mark.asyncio
    async def test_mission_restart_without_dcs(self, open_bridge, monkeypatch) -> None:
        from dcsmax.host import launcher

        monkeypatch.setattr(launcher, "find_processes", lambda names: [])
        async with open_bridge() as h:
            result = await h.call("sendMissionRestart")
        assert result == {"success": False, "error": "DCS is not running"}


class TestLogWatchMethods:
    """Tests for watchLog / stopWatchLog."""

    @pytest.mark.asyncio
    async def test_watch_emits_current_content(self, open_bridge, project_root: Path) -> None:
        log = project_root / "run.log"
        log.write_text("hello")
        async with open_bridge() as h:
            await h.notify("watchLog", "run.log")
            assert h.events("logUpdated") == [{"content": "hello"}]
            await h.notify("stopWatchLog")
            assert h.bridge.log_watcher.path is None
            assert not [m for m in h.messages if "id" in m]

    @pytest.mark.asyncio
    async def test_stop_sent_right_after_watch(self, open_bridge, project_root: Path) -> None:
        log = project_root / "run.log"
        log.write_text("hello")
        async with open_bridge() as h:
            await h.notify_many(("watchLog", "run.log"), ("stopWatchLog",))
            log.write_text("hello again")
            await asyncio.sleep(1.0)
            await h.bridge.outbox.flush()

            assert h.bridge.log_watcher.path is None
            assert h.events("logUpdated") == [{"content": "hello"}]

    @pytest.mark.asyncio
    async def test_back_to_back_watches_keep_the_last(self, open_bridge, project_root: Path) -> None:
        first = project_root / "a.log"
        second = project_root / "b.log"
        first.write_text("a")
        second.write_text("b")
        async with open_bridge() as h:
            await h.notify_many(("watchLog", "a.log"), ("watchLog", "b.log"))
            await asyncio.sleep(0.5)
            first.write_text("a changed")
            await asyncio.sleep(1.0)
            await h.bridge.outbox.flush()

            assert h.bridge.log_watcher.path.name == "b.log"
            assert {"content": "a changed"} not in h.events("logUpdated")
            assert h.events("logUpdated") == [{"content": "a"}, {"content": "b"}]
            await h.notify("stopWatchLog")
