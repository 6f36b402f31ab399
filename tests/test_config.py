"""Tests for mergebot/config.py — settings resolution."""

from pathlib import Path

import pytest
import yaml

from mergebot.config import ConfigError, Settings, apply_overrides, load_settings


def _write_config(tmp_path: Path, data) -> Path:
    path = tmp_path / "mergebot.yaml"
    path.write_text(yaml.dump(data))
    return path


class TestLoadSettings:
    def test_defaults_with_token_only(self):
        settings = load_settings(environ={"MERGEBOT_TOKEN": "abc123"})
        assert settings == Settings(token="abc123")
        assert settings.webhook_path == "/"
        assert settings.port == 3000

    def test_missing_token_fails(self):
        with pytest.raises(ConfigError, match="token"):
            load_settings(environ={"MERGEBOT_PORT": "8080"})

    def test_empty_token_fails(self):
        with pytest.raises(ConfigError):
            load_settings(environ={"MERGEBOT_TOKEN": ""})

    def test_environment_values(self):
        settings = load_settings(environ={
            "MERGEBOT_TOKEN": "abc123",
            "MERGEBOT_PATH": "/hooks/github",
            "MERGEBOT_PORT": "8080",
            "MERGEBOT_LOG_LEVEL": "debug",
        })
        assert settings.webhook_path == "/hooks/github"
        assert settings.port == 8080
        assert settings.log_level == "DEBUG"

    def test_shell_path_variable_is_not_used(self):
        settings = load_settings(environ={"MERGEBOT_TOKEN": "t", "PATH": "/usr/bin:/bin"})
        assert settings.webhook_path == "/"

    def test_file_values(self, tmp_path):
        config_file = _write_config(tmp_path, {
            "token": "from-file",
            "path": "/webhook",
            "port": 4000,
            "log_file": str(tmp_path / "logs" / "mergebot.log"),
        })
        settings = load_settings(config_file, environ={})
        assert settings.token == "from-file"
        assert settings.webhook_path == "/webhook"
        assert settings.port == 4000
        assert settings.log_file == tmp_path / "logs" / "mergebot.log"

    def test_environment_beats_file(self, tmp_path):
        config_file = _write_config(tmp_path, {"token": "from-file", "port": 4000})
        settings = load_settings(config_file, environ={"MERGEBOT_PORT": "5000"})
        assert settings.token == "from-file"
        assert settings.port == 5000

    def test_config_file_from_environment(self, tmp_path):
        config_file = _write_config(tmp_path, {"token": "from-file"})
        settings = load_settings(environ={"MERGEBOT_CONFIG": str(config_file)})
        assert settings.token == "from-file"

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yaml", environ={"MERGEBOT_TOKEN": "t"})

    def test_config_file_must_be_mapping(self, tmp_path):
        config_file = _write_config(tmp_path, ["token", "abc"])
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(config_file, environ={})

    def test_empty_config_file(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        settings = load_settings(config_file, environ={"MERGEBOT_TOKEN": "t"})
        assert settings.port == 3000

    @pytest.mark.parametrize("port", ["abc", "0", "70000"])
    def test_invalid_port(self, port):
        with pytest.raises(ConfigError, match="port"):
            load_settings(environ={"MERGEBOT_TOKEN": "t", "MERGEBOT_PORT": port})

    @pytest.mark.parametrize("path", ["hooks", "/health", "/queues/"])
    def test_invalid_webhook_path(self, path):
        with pytest.raises(ConfigError):
            load_settings(environ={"MERGEBOT_TOKEN": "t", "MERGEBOT_PATH": path})

    @pytest.mark.parametrize("port", [8080.9, True, "80.5", [8080]])
    def test_port_must_be_whole_number(self, tmp_path, port):
        config_file = _write_config(tmp_path, {"token": "t", "port": port})
        with pytest.raises(ConfigError, match="port"):
            load_settings(config_file, environ={})

    def test_port_from_yaml_int(self, tmp_path):
        config_file = _write_config(tmp_path, {"token": "t", "port": 8080})
        assert load_settings(config_file, environ={}).port == 8080

    @pytest.mark.parametrize("level", ["verbose", "WARN", "trace"])
    def test_invalid_log_level(self, tmp_path, level):
        config_file = _write_config(tmp_path, {"token": "t", "log_level": level})
        with pytest.raises(ConfigError, match="log level"):
            load_settings(config_file, environ={})

    def test_invalid_log_level_from_environment(self):
        with pytest.raises(ConfigError, match="log level"):
            load_settings(environ={"MERGEBOT_TOKEN": "t", "MERGEBOT_LOG_LEVEL": "verbose"})

    @pytest.mark.parametrize("level", ["critical", "Error", "warning", "INFO"])
    def test_log_level_names_are_normalized(self, level):
        settings = load_settings(environ={"MERGEBOT_TOKEN": "t", "MERGEBOT_LOG_LEVEL": level})
        assert settings.log_level == level.upper()


class TestSettings:
    def test_masked_hides_token(self):
        masked = Settings(token="ghp_supersecret9876").masked()
        assert masked["token"] == "****9876"
        assert "supersecret" not in str(masked)

    def test_masked_short_token(self):
        assert Settings(token="abc").masked()["token"] == "****"

    def test_apply_overrides_skips_none(self):
        settings = apply_overrides(Settings(token="t"), port=None, host="127.0.0.1")
        assert settings.port == 3000
        assert settings.host == "127.0.0.1"

    def test_apply_overrides_validates(self):
        with pytest.raises(ConfigError):
            apply_overrides(Settings(token="t"), webhook_path="no-slash")

    def test_apply_overrides_validates_log_level(self):
        with pytest.raises(ConfigError, match="log level"):
            apply_overrides(Settings(token="t"), log_level="WARN")
