"""Pytest fixtures for DCS-Max host tests."""

import asyncio
import json
import logging
import sys
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
import structlog

from dcsmax.core.config import HostConfig, LogWatchConfig, ToolsConfig
from dcsmax.core.paths import ProjectPaths

_HOST_ENV_VARS = (
    "DCSMAX_PROJECT_ROOT",
    "DCSMAX_LOG_LEVEL",
    "DCSMAX_LOG_FILE",
    "DCSMAX_LOG_FORMAT",
    "DCSMAX_CONFIG",
)


@pytest.fixture(autouse=True)
def reset_logging_state(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Reset logging and CLI state before and after each test.

    This ensures test isolation for logging configuration.
    """
    from dcsmax.cli import helpers as cli_helpers

    for name in _HOST_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    cli_helpers.reset_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_helpers.reset_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """A DCS-Max checkout with the Backups marker directory."""
    root = tmp_path / "DCS-Max"
    (root / "Backups").mkdir(parents=True)
    (root / "5-Optimization").mkdir()
    return root


@pytest.fixture
def project_paths(project_root: Path) -> ProjectPaths:
    return ProjectPaths(project_root)


@pytest.fixture
def python_tools() -> ToolsConfig:
    """Tools that run every script and command with the current interpreter.

    ``.ps1``/``.py`` files run as ``python <script>`` and inline commands as
    ``python -c <command>``.
    """
    return ToolsConfig(
        powershell_file=[sys.executable],
        powershell_command=[sys.executable, "-c"],
        cmd=[sys.executable],
        reg_import=[sys.executable],
        autohotkey_candidates=[],
        autohotkey_fallback=sys.executable,
    )


@pytest.fixture
def host_config(project_root: Path, python_tools: ToolsConfig) -> HostConfig:
    return HostConfig(
        project_root=project_root,
        tools=python_tools,
        log_watch=LogWatchConfig(settle_delay_seconds=0.05, force_polling=True),
    )


@pytest.fixture
def write_script(project_root: Path):
    """Write a Python script under the project root and return its path."""

    def _write(relative: str, body: str) -> Path:
        path = project_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body, encoding="utf-8")
        return path

    return _write


class BridgeHarness:
    """A started ``BridgeHost`` with a sink recording every envelope."""

    def __init__(self, bridge) -> None:
        self.bridge = bridge
        self.messages: list[dict] = []
        self._next_id = 0

    async def sink(self, text: str) -> None:
        self.messages.append(json.loads(text))

    async def call(self, method: str, *args):
        """Serve one request and return its result."""
        self._next_id += 1
        request_id = self._next_id
        task = self.bridge.submit(
            json.dumps({"id": request_id, "method": method, "args": list(args)})
        )
        assert task is not None
        await task
        await self.bridge.outbox.flush()
        return next(m["result"] for m in self.messages if m.get("id") == request_id)

    async def notify(self, method: str, *args) -> None:
        """Serve one fire-and-forget request."""
        task = self.bridge.submit(json.dumps({"id": 0, "method": method, "args": list(args)}))
        assert task is not None
        await task
        await self.bridge.outbox.flush()

    async def notify_many(self, *requests: tuple) -> None:
        """Submit several fire-and-forget requests back to back, then await them all.

        Each request is a ``(method, *args)`` tuple, as a transport receiving
        them in one read would dispatch them.
        """
        tasks = [
            self.bridge.submit(json.dumps({"id": 0, "method": method, "args": list(args)}))
            for method, *args in requests
        ]
        assert all(task is not None for task in tasks)
        await asyncio.gather(*tasks)
        await self.bridge.outbox.flush()

    def events(self, name: str) -> list:
        return [m["data"] for m in self.messages if m.get("event") == name]

    async def wait_for_event(self, name: str, count: int = 1, timeout: float = 10.0) -> list:
        """Poll until ``count`` events named ``name`` arrived."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while len(self.events(name)) < count:
            if loop.time() > deadline:
                raise AssertionError(f"timed out waiting for {count} {name} event(s)")
            await asyncio.sleep(0.02)
            await self.bridge.outbox.flush()
        return self.events(name)


@pytest.fixture
def open_bridge(host_config: HostConfig, project_paths: ProjectPaths):
    """Factory for a started bridge wired to a recording sink."""
    from dcsmax.bridge.methods import BridgeHost

    @asynccontextmanager
    async def _open(config: HostConfig | None = None):
        bridge = BridgeHost(config or host_config, project_paths)
        await bridge.start()
        harness = BridgeHarness(bridge)
        bridge.outbox.attach(harness.sink)
        try:
            yield harness
        finally:
            await bridge.shutdown()

    return _open
