#!/usr/bin/env python3
"""Tests for the ConfigManager module."""

from unittest.mock import MagicMock, patch

import pytest
import yaml

from lingomirror.core.constants import ConfigKey, ErrorCode
from lingomirror.infrastructure.config_manager import ConfigError, ConfigManager, ConfigSource


class TestConfigSource:
    """Tests for ConfigSource enum."""

    def test_precedence_order(self):
        """Test config source precedence ordering."""
        sources = [
            ConfigSource.COMPILED_DEFAULTS,
            ConfigSource.SYSTEM_CONFIG,
            ConfigSource.USER_CONFIG,
            ConfigSource.ENVIRONMENT,
            ConfigSource.CLI_ARGS,
            ConfigSource.RUNTIME,
        ]
        for i in range(len(sources) - 1):
            assert sources[i].value < sources[i + 1].value


class TestConfigManager:
    """Tests for ConfigManager."""

    def test_defaults(self):
        config = ConfigManager(load_environment=False)
        assert config.get(ConfigKey.STORE_PATH).endswith("mirrors.yaml")
        assert config.get(ConfigKey.LOG_LEVEL) == "INFO"
        assert config.get(ConfigKey.GHOST_THRESHOLD) == 30
        assert config.get(ConfigKey.PROBE_HARDLINKS) is False
        assert config.get("lingomirror.missing", "fallback") == "fallback"

    def test_load_file(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text(yaml.safe_dump({"lingomirror": {"store": {"path": "/srv/mirrors.yaml"}}}))

        config = ConfigManager(load_environment=False)
        config.load_file(str(path))

        assert config.get(ConfigKey.STORE_PATH) == "/srv/mirrors.yaml"
        assert config.get(ConfigKey.LOG_LEVEL) == "INFO"
        assert config.get_with_source(ConfigKey.STORE_PATH).source == ConfigSource.USER_CONFIG

    def test_missing_file(self, temp_dir):
        config = ConfigManager(load_environment=False)
        with pytest.raises(ConfigError) as exc:
            config.load_file(str(temp_dir / "missing.yaml"))
        assert exc.value.error_code == ErrorCode.NOT_FOUND

    def test_invalid_yaml(self, temp_dir):
        path = temp_dir / "bad.yaml"
        path.write_text("lingomirror: [unclosed")
        with pytest.raises(ConfigError, match="YAML parse error"):
            ConfigManager(load_environment=False).load_file(str(path))

    def test_non_dict_file(self, temp_dir):
        path = temp_dir / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="Invalid config format"):
            ConfigManager(load_environment=False).load_file(str(path))

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LINGOMIRROR_MIRROR__GHOST_THRESHOLD_MINUTES", "5")
        monkeypatch.setenv("LINGOMIRROR_MIRROR__PROBE_HARDLINKS", "true")
        monkeypatch.setenv("LINGOMIRROR_LOGGING__LEVEL", "DEBUG")

        config = ConfigManager()

        assert config.get(ConfigKey.GHOST_THRESHOLD) == 5
        assert config.get(ConfigKey.PROBE_HARDLINKS) is True
        assert config.get(ConfigKey.LOG_LEVEL) == "DEBUG"

    def test_cli_beats_environment(self, monkeypatch):
        monkeypatch.setenv("LINGOMIRROR_STORE__PATH", "/env/mirrors.yaml")
        config = ConfigManager()
        config.load_dict({"lingomirror": {"store": {"path": "/cli/mirrors.yaml"}}}, ConfigSource.CLI_ARGS)
        assert config.get(ConfigKey.STORE_PATH) == "/cli/mirrors.yaml"

    def test_set_and_watchers(self):
        config = ConfigManager(load_environment=False)
        watcher = MagicMock()
        config.add_watcher(watcher)

        config.set(ConfigKey.LOG_LEVEL, "ERROR")

        assert config.get(ConfigKey.LOG_LEVEL) == "ERROR"
        merged = watcher.call_args[0][0]
        assert merged["lingomirror"]["logging"]["level"] == "ERROR"
        assert merged["lingomirror"]["store"]["path"].endswith("mirrors.yaml")

    def test_failing_watcher_is_logged(self):
        config = ConfigManager(load_environment=False)
        config.add_watcher(MagicMock(side_effect=RuntimeError("boom")))
        with patch("lingomirror.infrastructure.config_manager.get_logger") as get_logger:
            config.set(ConfigKey.LOG_LEVEL, "ERROR")
        get_logger.return_value.exception.assert_called_once()

    def test_clear_keeps_defaults(self):
        config = ConfigManager(load_environment=False)
        config.set(ConfigKey.LOG_LEVEL, "ERROR")
        config.clear()
        assert config.get(ConfigKey.LOG_LEVEL) == "INFO"

    def test_reload_keeps_values_on_error(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text(yaml.safe_dump({"lingomirror": {"logging": {"level": "WARNING"}}}))
        config = ConfigManager(load_environment=False)
        config.load_file(str(path))

        path.write_text("lingomirror: [broken")
        config.reload()

        assert config.get(ConfigKey.LOG_LEVEL) == "WARNING"
