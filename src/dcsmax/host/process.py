"""Child-process execution for the host.

Three ways to start a program:

- ``run``: capture stdout / stderr and wait for exit.
- ``spawn_piped``: start with piped output for the caller to stream.
- ``launch_detached``: start a GUI program and forget about it.

All argv lists are passed to the OS directly, without a shell.
"""

from __future__ import annotations

import asyncio
import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from dcsmax.core.errors import ScriptLaunchError
from dcsmax.core.logging import get_logger

_logger = get_logger("process")

# Console children must not flash a window on Windows; 0 elsewhere.
_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0)
_DETACHED = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
    subprocess, "CREATE_NEW_PROCESS_GROUP", 0
)


@dataclass(frozen=True)
class CompletedRun:
    """Exit code and decoded output of a finished child."""

    code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.code == 0


class ProcessRunner:
    """Starts child processes and decodes their output.

    Args:
        encoding: Encoding of the children's console output. Undecodable
            bytes are replaced rather than failing the call.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def decode(self, data: bytes) -> str:
        return data.decode(self.encoding, errors="replace")

    async def run(self, argv: Sequence[str], cwd: Path | None = None) -> CompletedRun:
        """Run ``argv`` to completion, capturing both output streams.

        Raises:
            ScriptLaunchError: If the program could not be started.
        """
        proc = await self.spawn_piped(argv, cwd=cwd)
        stdout_bytes, stderr_bytes = await proc.communicate()
        code = proc.returncode if proc.returncode is not None else -1
        if code != 0:
            _logger.debug("process.nonzero_exit", program=argv[0], exit_code=code)
        return CompletedRun(code, self.decode(stdout_bytes), self.decode(stderr_bytes))

    async def spawn_piped(
        self, argv: Sequence[str], cwd: Path | None = None
    ) -> asyncio.subprocess.Process:
        """Start ``argv`` with stdout and stderr piped and stdin closed.

        Raises:
            ScriptLaunchError: If the program could not be started.
        """
        if not argv:
            raise ScriptLaunchError("Empty command")
        _logger.debug("process.spawn", argv=list(argv), cwd=str(cwd) if cwd else None)
        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                creationflags=_NO_WINDOW,
            )
        except (OSError, ValueError) as exc:
            _logger.warning("process.spawn_failed", program=argv[0], error=str(exc))
            raise ScriptLaunchError(str(exc)) from exc

    def launch_detached(self, argv: Sequence[str], cwd: Path | None = None) -> int:
        """Start a program without waiting for it. Returns its pid.

        Raises:
            ScriptLaunchError: If the program could not be started.
        """
        kwargs: dict[str, object] = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = _DETACHED
        else:
            kwargs["start_new_session"] = True
        try:
            proc = subprocess.Popen(  # noqa: S603
                list(argv),
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **kwargs,  # type: ignore[arg-type]
            )
        except OSError as exc:
            _logger.warning("process.launch_failed", program=argv[0], error=str(exc))
            raise ScriptLaunchError(str(exc)) from exc
        _logger.info("process.launched", program=argv[0], pid=proc.pid)
        return proc.pid


__all__ = ["CompletedRun", "ProcessRunner"]
