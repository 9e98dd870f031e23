"""Tests for the configuration module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from hotreload.config import (
    HotReloadConfig,
    LoggingConfig,
    Scope,
    dict_to_config,
    env_overrides,
    load_config,
    load_yaml_file,
)
from hotreload.config.merge import deep_merge, merge_layers
from hotreload.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from hotreload.errors import ConfigError


class TestDeepMerge:
    """Test the layered merge."""

    def test_simple_override(self) -> None:
        result = deep_merge({"interval": 100, "silent": True}, {"silent": False})
        assert result == {"interval": 100, "silent": False}

    def test_nested_logging_merge(self) -> None:
        base = {"logging": {"level": "info", "file": "/tmp/a.log"}}
        result = deep_merge(base, {"logging": {"level": "debug"}})
        assert result["logging"] == {"level": "debug", "file": "/tmp/a.log"}

    def test_none_does_not_override(self) -> None:
        assert deep_merge({"interval": 250}, {"interval": None}) == {"interval": 250}

    def test_inputs_not_mutated(self) -> None:
        base = {"logging": {"level": "info"}}
        deep_merge(base, {"logging": {"level": "debug"}})
        assert base == {"logging": {"level": "info"}}

    def test_merge_layers_later_wins(self) -> None:
        result = merge_layers({"interval": 1}, None, {"interval": 2}, {"scope": "loaded"})
        assert result == {"interval": 2, "scope": "loaded"}


class TestConfigPaths:
    """Test platform-aware path resolution."""

    def test_unix_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        assert get_system_config_path() == Path("/etc/hotreload/config.yaml")

    def test_windows_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("PROGRAMDATA", "C:\\ProgramData")
        path = get_system_config_path()
        assert path is not None
        assert "ProgramData" in str(path)
        assert "hotreload" in str(path)

    def test_unix_user_path_xdg(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/home/test/.config-custom")
        assert get_user_config_path() == Path("/home/test/.config-custom/hotreload/config.yaml")

    def test_windows_user_path_missing_appdata(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.delenv("APPDATA", raising=False)
        assert get_user_config_path() is None

    def test_project_config_path(self) -> None:
        assert get_project_config_path("/home/user/proj") == Path("/home/user/proj/.hotreload.yaml")

    def test_get_config_paths_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        paths = get_config_paths("/proj")
        assert paths[0] == Path("/etc/hotreload/config.yaml")
        assert paths[-1] == Path("/proj/.hotreload.yaml")
        assert len(paths) == 3

    def test_get_config_paths_without_project(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        assert len(get_config_paths()) == 2


class TestDictToConfig:
    """Strict validation of option dicts."""

    def test_defaults(self) -> None:
        config = dict_to_config({})
        assert config == HotReloadConfig()
        assert config.interval is None
        assert config.silent is True
        assert config.scope is Scope.VISIBLE
        assert config.polling is False
        assert config.interval_seconds is None

    def test_full_options(self) -> None:
        config = dict_to_config(
            {
                "interval": 500,
                "silent": False,
                "scope": "loaded",
                "logging": {"level": "debug", "file": "/tmp/hr.log", "verbose": 3},
            }
        )
        assert config.interval == 500
        assert config.interval_seconds == pytest.approx(0.5)
        assert config.polling is True
        assert config.silent is False
        assert config.scope is Scope.LOADED
        assert config.logging == LoggingConfig(level="debug", file="/tmp/hr.log", verbose=3)

    def test_scope_enum_accepted(self) -> None:
        assert dict_to_config({"scope": Scope.LOADED}).scope is Scope.LOADED

    @pytest.mark.parametrize("interval", [False, "off"])
    def test_interval_off_means_event_driven(self, interval: object) -> None:
        config = dict_to_config({"interval": interval})
        assert config.interval is None
        assert config.polling is False

    @pytest.mark.parametrize("interval", [0, -100, 1.5, "500", True])
    def test_bad_interval_rejected(self, interval: object) -> None:
        with pytest.raises(ConfigError, match="interval"):
            dict_to_config({"interval": interval})

    @pytest.mark.parametrize("silent", ["yes", 1, 0])
    def test_bad_silent_rejected(self, silent: object) -> None:
        with pytest.raises(ConfigError, match="silent"):
            dict_to_config({"silent": silent})

    def test_bad_scope_rejected(self) -> None:
        with pytest.raises(ConfigError, match="scope"):
            dict_to_config({"scope": "everything"})

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ConfigError, match="intervall"):
            dict_to_config({"intervall": 100})

    def test_unknown_logging_key_rejected(self) -> None:
        with pytest.raises(ConfigError, match="logging"):
            dict_to_config({"logging": {"colour": True}})

    def test_logging_must_be_mapping(self) -> None:
        with pytest.raises(ConfigError):
            dict_to_config({"logging": "debug"})

    def test_non_mapping_rejected(self) -> None:
        with pytest.raises(ConfigError):
            dict_to_config(["interval", 100])  # type: ignore[arg-type]

    def test_config_is_frozen(self) -> None:
        config = HotReloadConfig()
        with pytest.raises(AttributeError):
            config.interval = 5  # type: ignore[misc]


class TestEnvOverrides:
    def test_empty_environment(self) -> None:
        assert env_overrides() == {}

    def test_all_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOTRELOAD_INTERVAL", "250")
        monkeypatch.setenv("HOTRELOAD_SILENT", "no")
        monkeypatch.setenv("HOTRELOAD_SCOPE", "loaded")
        monkeypatch.setenv("HOTRELOAD_LOG", "/tmp/hr.log")
        assert env_overrides() == {
            "interval": 250,
            "silent": False,
            "scope": "loaded",
            "logging": {"file": "/tmp/hr.log"},
        }

    def test_interval_off(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOTRELOAD_INTERVAL", "OFF")
        assert env_overrides() == {"interval": "off"}

    def test_bad_interval(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOTRELOAD_INTERVAL", "fast")
        with pytest.raises(ConfigError, match="HOTRELOAD_INTERVAL"):
            env_overrides()

    def test_bad_silent(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOTRELOAD_SILENT", "maybe")
        with pytest.raises(ConfigError, match="HOTRELOAD_SILENT"):
            env_overrides()


class TestLoadConfig:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert load_yaml_file(tmp_path / "absent.yaml") == {}

    def test_empty_file_is_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}

    def test_invalid_yaml_is_fatal(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("interval: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_yaml_file(path)

    def test_non_mapping_yaml_is_fatal(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_yaml_file(path)

    def test_project_file_then_env_then_options(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".hotreload.yaml").write_text(
            "interval: 1000\nsilent: false\nscope: loaded\n"
        )
        monkeypatch.setenv("HOTRELOAD_INTERVAL", "300")

        config = load_config(str(tmp_path), {"silent": True})

        assert config.interval == 300
        assert config.silent is True
        assert config.scope is Scope.LOADED

    def test_user_file_loaded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        user_dir = tmp_path / "xdg" / "hotreload"
        user_dir.mkdir(parents=True)
        (user_dir / "config.yaml").write_text("interval: 750\n")

        assert load_config().interval == 750

    def test_explicit_config_file(self, tmp_path: Path) -> None:
        extra = tmp_path / "extra.yaml"
        extra.write_text("scope: loaded\n")
        assert load_config(config_file=extra).scope is Scope.LOADED

    def test_none_option_keeps_lower_interval(self, tmp_path: Path) -> None:
        (tmp_path / ".hotreload.yaml").write_text("interval: 1000\n")
        assert load_config(str(tmp_path), {"interval": None}).interval == 1000

    @pytest.mark.parametrize("off", [False, "off"])
    def test_off_option_overrides_lower_interval(self, tmp_path: Path, off: object) -> None:
        (tmp_path / ".hotreload.yaml").write_text("interval: 1000\n")
        config = load_config(str(tmp_path), {"interval": off})
        assert config.interval is None
        assert config.polling is False

    def test_project_yaml_off_overrides_user_interval(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        user_dir = tmp_path / "xdg" / "hotreload"
        user_dir.mkdir(parents=True)
        (user_dir / "config.yaml").write_text("interval: 750\n")
        (tmp_path / ".hotreload.yaml").write_text("interval: off\n")

        assert load_config(str(tmp_path)).polling is False

    def test_env_off_overrides_file_interval(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".hotreload.yaml").write_text("interval: 1000\n")
        monkeypatch.setenv("HOTRELOAD_INTERVAL", "off")
        assert load_config(str(tmp_path)).interval is None

    def test_use_files_false_ignores_files(self, tmp_path: Path) -> None:
        (tmp_path / ".hotreload.yaml").write_text("interval: 1000\n")
        assert load_config(str(tmp_path), use_files=False).interval is None

    def test_invalid_options_raise(self) -> None:
        with pytest.raises(ConfigError):
            load_config(options={"interval": "soon"}, use_files=False)

    def test_options_must_be_mapping(self) -> None:
        with pytest.raises(ConfigError):
            load_config(options=500, use_files=False)  # type: ignore[arg-type]
