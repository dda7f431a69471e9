"""The bridge host: owns the host's state and registers every bridge method.

``BridgeHost`` is the one object a transport needs. It owns the outbox, the
streamed script session and the log watch for the lifetime of the process,
and wires each method name the UI calls to an adapter that converts the
collaborators' exceptions into ``Failure`` results.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from dcsmax.bridge.handler import RequestHandler
from dcsmax.bridge.outbox import Outbox
from dcsmax.bridge.results import Failure, Ok, Result
from dcsmax.core.config import HostConfig
from dcsmax.core.errors import HostError, ScriptLaunchError
from dcsmax.core.logging import get_logger
from dcsmax.core.paths import ProjectPaths
from dcsmax.host import dialogs, lua_options, probe, system
from dcsmax.host.backups import RegistryImporter, list_backups
from dcsmax.host.config_store import ConfigStore
from dcsmax.host.launcher import Launcher
from dcsmax.host.log_watcher import LogWatcher
from dcsmax.host.process import ProcessRunner
from dcsmax.host.scripts import ScriptSession
from dcsmax.host.system import SystemOps
from dcsmax.host.toggles import ToggleFile

_logger = get_logger("bridge.methods")

Adapter = Callable[..., Awaitable[Result | None]]


def recovering(fn: Adapter) -> Adapter:
    """Turn ``HostError`` / ``OSError`` raised by ``fn`` into a Failure result.

    Anything else (bad arity, wrong argument types) propagates to the
    dispatcher's catch-all.
    """

    @functools.wraps(fn)
    async def wrapper(*args: Any) -> Result | None:
        try:
            return await fn(*args)
        except (HostError, OSError) as exc:
            _logger.warning("bridge.method_failed", error=str(exc))
            return Failure(str(exc))

    return wrapper


def _str_args(args: Any) -> list[str]:
    if args is None:
        return []
    if isinstance(args, str):
        return [args]
    return [str(a) for a in args]


class BridgeHost:
    """Owns the outbox, script session and log watch; serves all methods.

    Usage::

        host = BridgeHost(config, ProjectPaths.from_config(config))
        await host.start()
        host.outbox.attach(send_text)
        host.submit('{"id": 1, "method": "getProjectRoot", "args": []}')
        ...
        await host.shutdown()
    """

    def __init__(self, config: HostConfig, paths: ProjectPaths) -> None:
        self.config = config
        self.paths = paths
        tools = config.tools

        self.outbox = Outbox()
        self.handler = RequestHandler(
            self.outbox,
            echo_request_id_on_error=config.bridge.echo_request_id_on_error,
        )
        self.runner = ProcessRunner(tools.output_encoding)
        self.scripts = ScriptSession(self.runner, tools, self.outbox.emit)
        self.log_watcher = LogWatcher(
            self.outbox.emit,
            settle_delay=config.log_watch.settle_delay_seconds,
            force_polling=config.log_watch.force_polling,
        )
        self.store = ConfigStore(paths)
        self.toggles = ToggleFile(paths.resolve(config.optimization_config))
        self.backups_dir = paths.resolve(config.backups_dir)
        self.registry = RegistryImporter(self.backups_dir, self.runner, tools)
        self.system = SystemOps(self.runner, tools)
        self.launcher = Launcher(self.runner, tools)
        self.settings_paths = probe.SettingsPathsStore(paths.resolve(config.settings_paths_file))

        self._register_methods(self.handler)

    async def start(self) -> None:
        await self.outbox.start()
        _logger.info(
            "bridge.host_started",
            project_root=str(self.paths.root),
            methods=len(self.handler.methods),
        )

    async def shutdown(self) -> None:
        """Release the script session and log watch, then flush the outbox."""
        await self.scripts.close()
        await self.log_watcher.stop()
        await self.handler.cancel_inflight()
        await self.outbox.shutdown()
        _logger.info("bridge.host_stopped")

    def submit(self, text: str | bytes, *, transport: str | None = None) -> asyncio.Task[Any] | None:
        """Serve one inbound message."""
        return self.handler.submit(text, transport=transport)

    def _register_methods(self, handler: RequestHandler) -> None:
        """Wire every bridge method to its collaborator."""
        paths = self.paths

        # -- config documents ------------------------------------------------

        @recovering
        async def read_ini_config(path: str) -> Result:
            return Ok(await asyncio.to_thread(self.store.read_ini, path))

        @recovering
        async def write_ini_config(path: str, content: str) -> Result:
            await asyncio.to_thread(self.store.write_ini, path, content)
            return Ok()

        @recovering
        async def read_json_config(path: str) -> Result:
            return Ok(await asyncio.to_thread(self.store.read_json, path))

        @recovering
        async def write_json_config(path: str, json_content: Any) -> Result:
            await asyncio.to_thread(self.store.write_json, path, json_content)
            return Ok()

        @recovering
        async def list_directory(path: str) -> Result:
            return Ok(await asyncio.to_thread(self.store.list_directory, path))

        @recovering
        async def read_log(path: str) -> Result:
            return Ok({"content": await asyncio.to_thread(self.store.read_log, path)})

        # -- optimization toggles -------------------------------------------

        @recovering
        async def read_optimization_config() -> Result:
            exists = self.toggles.exists
            config = await asyncio.to_thread(self.toggles.read)
            return Ok({"exists": exists, "config": config})

        @recovering
        async def write_optimization_config(config: dict[str, bool]) -> Result:
            await asyncio.to_thread(self.toggles.write, config)
            return Ok()

        async def get_optimization_config_path() -> Result:
            return Ok({"path": str(self.toggles.path), "exists": self.toggles.exists})

        # -- scripts --------------------------------------------------------

        async def execute_script(path: str, args: Any = None) -> Result:
            try:
                run = await self.system.run_script(paths.resolve(path), _str_args(args))
            except ScriptLaunchError as exc:
                return Failure(str(exc), {"stdout": "", "stderr": ""})
            payload = {"code": run.code, "stdout": run.stdout, "stderr": run.stderr}
            return Ok(payload) if run.success else Failure(None, payload)

        async def execute_script_stream(path: str, args: Any = None) -> None:
            await self.scripts.start(paths.resolve(path), _str_args(args))

        async def stop_script() -> None:
            await self.scripts.stop()

        async def execute_command(command: str) -> Result:
            try:
                run = await self.system.powershell(command)
            except ScriptLaunchError as exc:
                return Failure(None, {"exitCode": -1, "stdout": "", "stderr": str(exc)})
            payload = {"exitCode": run.code, "stdout": run.stdout, "stderr": run.stderr}
            return Ok(payload) if run.success else Failure(None, payload)

        # -- logs -----------------------------------------------------------

        async def watch_log(path: str) -> None:
            await self.log_watcher.start(paths.resolve(path))

        async def stop_watch_log() -> None:
            await self.log_watcher.stop()

        # -- backups --------------------------------------------------------

        @recovering
        async def list_backups_method() -> Result:
            return Ok({"backups": await asyncio.to_thread(list_backups, self.backups_dir)})

        @recovering
        async def import_registry(reg_file_name: str) -> Result:
            code, reg_file = await self.registry.import_file(reg_file_name)
            if code == 0:
                return Ok({"file": str(reg_file)})
            return Failure(f"Registry import failed (exit code {code})", {"file": str(reg_file)})

        # -- system ---------------------------------------------------------

        @recovering
        async def get_system_info() -> Result:
            return Ok({"info": await self.system.system_info()})

        async def is_admin() -> Result:
            try:
                return Ok({"isAdmin": await asyncio.to_thread(system.is_admin)})
            except Exception:
                _logger.warning("system.admin_check_failed", exc_info=True)
                return Failure(None, {"isAdmin": False})

        async def get_project_root() -> Result:
            return Ok({"path": str(paths.root)})

        @recovering
        async def get_services() -> Result:
            return Ok({"services": await self.system.services()})

        @recovering
        async def create_restore_point(name: str | None = None) -> Result:
            return Ok({"name": await self.system.create_restore_point(name)})

        @recovering
        async def open_file(path: str) -> Result:
            await asyncio.to_thread(system.open_path, paths.resolve(path))
            return Ok()

        @recovering
        async def open_external(url: str) -> Result:
            await asyncio.to_thread(system.open_url, url)
            return Ok()

        # -- dialogs --------------------------------------------------------

        async def browse_for_file(title: str | None = None, filter_spec: str | None = None) -> Result:
            chosen = await dialogs.browse_for_file(title, filter_spec)
            return Ok({"path": chosen}) if chosen else Failure(None, {"cancelled": True})

        async def browse_for_folder(title: str | None = None) -> Result:
            chosen = await dialogs.browse_for_folder(title)
            return Ok({"path": chosen}) if chosen else Failure(None, {"cancelled": True})

        # -- tool paths and DCS options ------------------------------------

        async def detect_paths() -> Result:
            return Ok({"paths": await asyncio.to_thread(probe.detect_paths)})

        @recovering
        async def read_settings_paths() -> Result:
            return Ok({"paths": await asyncio.to_thread(self.settings_paths.read)})

        @recovering
        async def write_settings_paths(settings: dict[str, Any]) -> Result:
            await asyncio.to_thread(self.settings_paths.write, settings)
            return Ok()

        @recovering
        async def read_options_lua(path: str) -> Result:
            settings = await asyncio.to_thread(lua_options.read_options_file, paths.resolve(path))
            return Ok({"settings": settings})

        # -- benchmark launches --------------------------------------------

        @recovering
        async def launch_vr_software(hardware: str, exe_path: str) -> Result:
            already = await asyncio.to_thread(
                self.launcher.launch_vr, hardware, Path(exe_path or "")
            )
            return Ok({"alreadyRunning": already})

        @recovering
        async def launch_dcs_with_mission(dcs_exe_path: str, mission_path: str) -> Result:
            already = await asyncio.to_thread(
                self.launcher.launch_dcs,
                Path(dcs_exe_path or ""),
                paths.resolve(mission_path or ""),
            )
            return Ok({"alreadyRunning": already})

        @recovering
        async def send_mission_restart() -> Result:
            await self.launcher.restart_mission()
            return Ok()

        table: dict[str, Adapter] = {
            "readIniConfig": read_ini_config,
            "writeIniConfig": write_ini_config,
            "readJsonConfig": read_json_config,
            "writeJsonConfig": write_json_config,
            "readOptimizationConfig": read_optimization_config,
            "writeOptimizationConfig": write_optimization_config,
            "getOptimizationConfigPath": get_optimization_config_path,
            "executeScript": execute_script,
            "executeScriptStream": execute_script_stream,
            "stopScript": stop_script,
            "listBackups": list_backups_method,
            "importRegistry": import_registry,
            "readLog": read_log,
            "watchLog": watch_log,
            "stopWatchLog": stop_watch_log,
            "getSystemInfo": get_system_info,
            "isAdmin": is_admin,
            "getProjectRoot": get_project_root,
            "listDirectory": list_directory,
            "getServices": get_services,
            "createRestorePoint": create_restore_point,
            "openFile": open_file,
            "browseForFile": browse_for_file,
            "browseForFolder": browse_for_folder,
            "executeCommand": execute_command,
            "openExternal": open_external,
            "detectPaths": detect_paths,
            "readSettingsPaths": read_settings_paths,
            "writeSettingsPaths": write_settings_paths,
            "readOptionsLua": read_options_lua,
            "launchVRSoftware": launch_vr_software,
            "launchDCSWithMission": launch_dcs_with_mission,
            "sendMissionRestart": send_mission_restart,
        }
        for method, adapter in table.items():
            handler.register(method, adapter)


__all__ = ["BridgeHost", "recovering"]
