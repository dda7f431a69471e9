"""Tests for dcsmax.core.config models and loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from dcsmax.core.config import HostConfig, ToolsConfig, load_config


class TestHostConfigDefaults:
    """The host must run without any config file."""

    def test_defaults(self) -> None:
        config = HostConfig()
        assert config.project_root is None
        assert config.root_marker == "Backups"
        assert config.backups_dir == Path("Backups")
        assert config.optimization_config == Path("5-Optimization/optimization-config.txt")
        assert config.bridge.host == "127.0.0.1"
        assert config.bridge.port == 47815
        assert config.bridge.echo_request_id_on_error is True
        assert config.web.port == 47816
        assert config.web.dist_dir == Path("ui-app/dist")
        assert config.log_format == "console"

    def test_default_tools_run_through_powershell(self) -> None:
        tools = ToolsConfig()
        assert tools.powershell_file[0] == "powershell.exe"
        assert tools.powershell_file[-1] == "-File"
        assert tools.powershell_command[-1] == "-Command"
        assert tools.cmd == ["cmd.exe", "/c"]

    def test_log_level_case_insensitive(self) -> None:
        assert HostConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            HostConfig(log_level="chatty")

    def test_port_range(self) -> None:
        with pytest.raises(ValidationError):
            HostConfig.model_validate({"bridge": {"port": 70000}})

    def test_empty_prefix_rejected(self) -> None:
        with pytest.raises(ValidationError, match="at least the executable"):
            ToolsConfig(powershell_file=[])

    def test_config_file_not_dumped(self, tmp_path: Path) -> None:
        config = HostConfig(config_file=tmp_path / "dcsmax.yaml")
        assert "config_file" not in config.model_dump()


class TestLoadConfig:
    """Tests for YAML loading and environment overrides."""

    def test_no_file_gives_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        config = load_config()
        assert config == HostConfig()
        assert config.config_file is None

    def test_missing_explicit_file_gives_defaults(self, tmp_path: Path) -> None:
        assert load_config(tmp_path / "nope.yaml").config_file is None

    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "host.yaml"
        path.write_text(
            yaml.safe_dump({
                "project_root": str(tmp_path),
                "log_level": "warning",
                "bridge": {"port": 50000, "echo_request_id_on_error": False},
                "tools": {"dcs_mission_args": ["--mission", "--no-launcher"]},
            })
        )

        config = load_config(path)

        assert config.project_root == tmp_path
        assert config.log_level == "WARNING"
        assert config.bridge.port == 50000
        assert config.bridge.echo_request_id_on_error is False
        assert config.tools.dcs_mission_args == ["--mission", "--no-launcher"]
        assert config.config_file == path.resolve()

    def test_empty_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path).bridge.port == 47815

    def test_default_file_in_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "dcsmax.yaml").write_text("web:\n  open_browser: false\n")
        monkeypatch.chdir(tmp_path)

        config = load_config()

        assert config.web.open_browser is False
        assert config.config_file == (tmp_path / "dcsmax.yaml").resolve()

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "host.yaml"
        path.write_text("project_root: /somewhere/else\nlog_level: INFO\n")
        monkeypatch.setenv("DCSMAX_PROJECT_ROOT", str(tmp_path))
        monkeypatch.setenv("DCSMAX_LOG_LEVEL", "debug")

        config = load_config(path)

        assert config.project_root == tmp_path
        assert config.log_level == "DEBUG"

    def test_invalid_values_raise(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("bridge:\n  port: not-a-port\n")
        with pytest.raises(ValidationError):
            load_config(path)
