"""Configuration management for mergebot.

Settings come from three places, highest precedence first:

1. ``MERGEBOT_*`` environment variables
2. an optional YAML file (``--config`` / ``MERGEBOT_CONFIG``)
3. built-in defaults (only for the webhook path, port, host and log level)

The GitHub token has no default; startup fails with ``ConfigError`` when it
is missing.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping

import yaml

ENV_PREFIX = "MERGEBOT_"
CONFIG_ENV = "MERGEBOT_CONFIG"
RESERVED_PATHS = ("/health", "/queues")
# names both logging and uvicorn accept
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class ConfigError(RuntimeError):
    """A required option is missing or an option has an invalid value."""


@dataclass(frozen=True)
class Settings:
    token: str
    webhook_path: str = "/"
    port: int = 3000
    host: str = "0.0.0.0"
    log_level: str = "INFO"
    log_file: Path | None = None

    def masked(self) -> dict:
        """Return the settings as a dict with the token hidden."""
        return {
            "webhook_path": self.webhook_path,
            "port": self.port,
            "host": self.host,
            "token": _mask(self.token),
            "log_level": self.log_level,
            "log_file": str(self.log_file) if self.log_file else None,
        }


# option name -> (env suffix, yaml key)
_OPTIONS = {
    "webhook_path": ("PATH", "path"),
    "port": ("PORT", "port"),
    "token": ("TOKEN", "token"),
    "host": ("HOST", "host"),
    "log_level": ("LOG_LEVEL", "log_level"),
    "log_file": ("LOG_FILE", "log_file"),
}


def _mask(token: str) -> str:
    if len(token) <= 4:
        return "****"
    return "****" + token[-4:]


def _read_file(config_file: Path) -> dict:
    """Read a YAML config file, returning an empty dict for an empty file."""
    if not config_file.is_file():
        raise ConfigError(f"Config file not found: {config_file}")
    try:
        data = yaml.safe_load(config_file.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_file} must contain a mapping")
    return data


def _coerce_port(value: object) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"Invalid port {value!r}: must be an integer")
    if isinstance(value, int):
        port = value
    elif isinstance(value, str) and value.strip().isdecimal():
        port = int(value.strip())
    else:
        raise ConfigError(f"Invalid port {value!r}: must be an integer")
    if not 1 <= port <= 65535:
        raise ConfigError(f"Invalid port {port}: must be between 1 and 65535")
    return port


def _check_log_level(value: object) -> str:
    level = str(value).strip().upper()
    if level not in LOG_LEVELS:
        raise ConfigError(
            f"Invalid log level {value!r}: must be one of {', '.join(LOG_LEVELS)}"
        )
    return level


def _check_path(path: str) -> str:
    if not path.startswith("/"):
        raise ConfigError(f"Invalid webhook path {path!r}: must start with '/'")
    if path.rstrip("/") in RESERVED_PATHS:
        raise ConfigError(f"Webhook path {path!r} collides with a built-in route")
    return path


def load_settings(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Resolve settings from the environment, an optional YAML file and defaults.

    Args:
        config_file: Optional YAML file.  When ``None``, ``MERGEBOT_CONFIG``
            is consulted.
        environ: Environment mapping (default: ``os.environ``).

    Raises:
        ConfigError: if the token is missing or a value is malformed.
    """
    env = os.environ if environ is None else environ
    if config_file is None and env.get(CONFIG_ENV):
        config_file = Path(env[CONFIG_ENV])
    file_values = _read_file(config_file) if config_file is not None else {}

    values: dict = {}
    for option, (suffix, key) in _OPTIONS.items():
        env_value = env.get(ENV_PREFIX + suffix)
        if env_value:
            values[option] = env_value
        elif file_values.get(key) not in (None, ""):
            values[option] = file_values[key]

    token = values.pop("token", None)
    if not token:
        raise ConfigError(
            f'Missing required config option "token" '
            f"(set {ENV_PREFIX}TOKEN or 'token' in the config file)."
        )

    settings = Settings(token=str(token))
    if "webhook_path" in values:
        settings = replace(settings, webhook_path=_check_path(str(values["webhook_path"])))
    if "port" in values:
        settings = replace(settings, port=_coerce_port(values["port"]))
    if "host" in values:
        settings = replace(settings, host=str(values["host"]))
    if "log_level" in values:
        settings = replace(settings, log_level=_check_log_level(values["log_level"]))
    if "log_file" in values:
        settings = replace(settings, log_file=Path(values["log_file"]))
    return settings


def apply_overrides(settings: Settings, **overrides) -> Settings:
    """Return *settings* with non-None command-line *overrides* applied and validated."""
    for option, value in overrides.items():
        if value is None:
            continue
        if option == "webhook_path":
            value = _check_path(value)
        elif option == "port":
            value = _coerce_port(value)
        elif option == "log_level":
            value = _check_log_level(value)
        settings = replace(settings, **{option: value})
    return settings
