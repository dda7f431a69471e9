"""Script execution: interpreter selection and the streamed script session.

DCS-Max ships PowerShell, batch, AutoHotkey and .reg scripts. The
interpreter is picked from the script's extension; the command prefixes
come from ``ToolsConfig`` so the session can be exercised with stand-in
interpreters.

At most one script streams its output at a time. Starting another one kills
the running script and silences whatever it still had to say.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import re
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from dcsmax.bridge.protocol import EventName
from dcsmax.core.config import ToolsConfig
from dcsmax.core.errors import ScriptLaunchError
from dcsmax.core.logging import get_logger
from dcsmax.core.tasks import spawn
from dcsmax.host.process import ProcessRunner

_logger = get_logger("scripts")

# Posts one event; ScriptSession never awaits delivery
EmitFn = Callable[[EventName, Any], None]

# Output is read in chunks and split on newlines, so line length is unbounded
_READ_CHUNK = 64 * 1024

_WINDOWS_VAR = re.compile(r"%([^%]+)%")


def expand_windows_vars(text: str) -> str | None:
    """Expand ``%NAME%`` references; None if any variable is undefined."""
    missing = False

    def _sub(match: re.Match[str]) -> str:
        nonlocal missing
        value = os.environ.get(match.group(1))
        if value is None:
            missing = True
            return ""
        return value

    expanded = _WINDOWS_VAR.sub(_sub, text)
    return None if missing else expanded


def resolve_autohotkey(tools: ToolsConfig) -> str:
    """First existing AutoHotkey v2 candidate, else the bare fallback name."""
    for candidate in tools.autohotkey_candidates:
        path = expand_windows_vars(candidate)
        if path and os.path.isfile(path):
            return path
    return tools.autohotkey_fallback


def build_command(
    script: Path,
    args: Sequence[str],
    tools: ToolsConfig,
    autohotkey: str | None = None,
) -> list[str]:
    """Build the argv that runs ``script`` with ``args``."""
    ext = script.suffix.lower()
    if ext == ".reg":
        return [*tools.reg_import, str(script)]
    if ext == ".ahk":
        return [autohotkey or resolve_autohotkey(tools), str(script), *args]
    if ext in (".bat", ".cmd"):
        return [*tools.cmd, str(script), *args]
    return [*tools.powershell_file, str(script), *args]


class ScriptSession:
    """The single streamed script.

    Emits ``scriptOutput {type, data}`` for every output line as it arrives
    and one ``scriptComplete {code, stdout, stderr}`` after the process has
    exited and both streams are drained.
    """

    def __init__(self, runner: ProcessRunner, tools: ToolsConfig, emit: EmitFn) -> None:
        self._runner = runner
        self._tools = tools
        self._emit = emit
        self._proc: asyncio.subprocess.Process | None = None
        self._pump_task: asyncio.Task[None] | None = None
        # Bumped on every start; events of older generations are dropped
        self._generation = 0
        # Held by start, stop and close until the session state is settled
        self._lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        """True while a started process has not been reaped."""
        return self._proc is not None and self._proc.returncode is None

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    def _emit_for(self, generation: int, event: EventName, data: dict[str, Any]) -> None:
        if generation == self._generation:
            self._emit(event, data)

    def _output(self, generation: int, stream: str, text: str) -> None:
        self._emit_for(generation, "scriptOutput", {"type": stream, "data": text})

    def _complete(self, generation: int, code: int, stdout: str, stderr: str) -> None:
        self._emit_for(
            generation,
            "scriptComplete",
            {"code": code, "stdout": stdout, "stderr": stderr},
        )

    async def start(self, script: Path, args: Sequence[Any] | None = None) -> None:
        """Start streaming ``script``; returns once it is running (or has failed)."""
        async with self._lock:
            await self._discard_current()
            self._generation += 1
            await self._spawn(script, [str(a) for a in (args or [])], self._generation)

    async def _spawn(self, script: Path, args: list[str], generation: int) -> None:
        autohotkey: str | None = None
        if script.suffix.lower() == ".ahk":
            autohotkey = resolve_autohotkey(self._tools)
            self._output(generation, "stdout", f"Using AutoHotkey: {autohotkey}\n")
            self._output(generation, "stdout", f"Script: {script}\n")
            if not script.is_file():
                _logger.warning("scripts.not_found", script=str(script))
                self._output(generation, "stderr", f"ERROR: Script file not found: {script}\n")
                self._complete(generation, 1, "", "Script not found")
                return

        argv = build_command(script, args, self._tools, autohotkey)
        try:
            proc = await self._runner.spawn_piped(argv, cwd=script.parent)
        except ScriptLaunchError as exc:
            message = str(exc)
            self._output(generation, "stderr", f"ERROR: {message}\n")
            self._complete(generation, -1, "", message)
            return

        self._proc = proc
        _logger.info("scripts.session_started", script=str(script), pid=proc.pid)
        self._pump_task = spawn(
            self._pump(proc, generation),
            _logger,
            "scripts.pump_died",
            name=f"script-pump-{proc.pid}",
        )

    async def stop(self) -> None:
        """Force-kill the running script. No-op when nothing is running.

        The session still reports ``scriptComplete`` for the killed process.
        """
        async with self._lock:
            proc = self._proc
            if proc is None or proc.returncode is not None:
                return
            try:
                proc.kill()
            except ProcessLookupError:
                return
            _logger.info("scripts.session_killed", pid=proc.pid)

    async def wait(self) -> None:
        """Wait until the current session has reported completion."""
        if self._pump_task is not None:
            await asyncio.gather(self._pump_task, return_exceptions=True)

    async def close(self) -> None:
        """Kill the running script without reporting it (host shutdown)."""
        async with self._lock:
            await self._discard_current()
            self._generation += 1

    async def _discard_current(self) -> None:
        proc, task = self._proc, self._pump_task
        self._proc = None
        self._pump_task = None
        if proc is not None and proc.returncode is None:
            _logger.info("scripts.session_replaced", pid=proc.pid)
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if proc is not None and proc.returncode is None:
            await proc.wait()

    async def _pump(self, proc: asyncio.subprocess.Process, generation: int) -> None:
        assert proc.stdout is not None and proc.stderr is not None
        stdout: list[str] = []
        stderr: list[str] = []
        try:
            await asyncio.gather(
                self._read_lines(proc.stdout, "stdout", generation, stdout),
                self._read_lines(proc.stderr, "stderr", generation, stderr),
            )
        except Exception:
            # A dead reader would leave the child blocked on a full pipe
            _logger.warning("scripts.output_read_failed", pid=proc.pid, exc_info=True)
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
        code = await proc.wait()
        _logger.info("scripts.session_completed", pid=proc.pid, exit_code=code)
        self._complete(generation, code, "".join(stdout), "".join(stderr))
        if self._proc is proc:
            self._proc = None

    async def _read_lines(
        self,
        stream: asyncio.StreamReader,
        kind: str,
        generation: int,
        collected: list[str],
    ) -> None:
        pending = bytearray()
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                break
            end = chunk.rfind(b"\n")
            pending.extend(chunk)
            if end == -1:
                continue
            end += len(pending) - len(chunk)
            complete = bytes(pending[: end + 1])
            del pending[: end + 1]
            for raw in complete.split(b"\n")[:-1]:
                self._line(generation, kind, raw, collected)
        if pending:
            self._line(generation, kind, bytes(pending), collected)

    def _line(self, generation: int, kind: str, raw: bytes, collected: list[str]) -> None:
        line = self._runner.decode(raw).rstrip("\r") + "\n"
        collected.append(line)
        self._output(generation, kind, line)


__all__ = [
    "EmitFn",
    "ScriptSession",
    "build_command",
    "expand_windows_vars",
    "resolve_autohotkey",
]
