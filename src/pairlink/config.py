"""Configuration management for pairlink."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import yaml

from pairlink.errors import ConfigError

logger = logging.getLogger(__name__)

DIGEST_BACKENDS = ("auto", "openssl", "sodium")


@dataclass
class Config:
    """Client/agent configuration.

    Attributes:
        server_url: Relay server URL from the config file. Takes part in
            resolution below an explicit argument and the persisted override.
        server_override_file: Where the persisted server override lives.
            None uses the default location next to the config file.
        poll_interval: Seconds between approval polls.
        request_timeout: Per-request timeout for relay calls, in seconds.
        digest_backend: SHA-512 backend for key derivation.
        log_level: Logging level name.
        log_file: Optional log file path.
    """

    server_url: str | None = None
    server_override_file: str | None = None
    poll_interval: float = 1.0
    request_timeout: float = 10.0
    digest_backend: str = "auto"
    log_level: str = "INFO"
    log_file: str | None = None

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: If any value is out of range.
        """
        if self.server_url is not None and not isinstance(self.server_url, str):
            raise ConfigError("server_url must be a string")
        if self.poll_interval <= 0:
            raise ConfigError("poll_interval must be positive")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")
        if self.digest_backend not in DIGEST_BACKENDS:
            raise ConfigError(
                f"digest_backend must be one of {', '.join(DIGEST_BACKENDS)}"
            )

    def override_path(self) -> Path:
        """Path of the persisted server override file."""
        if self.server_override_file:
            return Path(self.server_override_file).expanduser()
        return get_config_path().parent / "server.json"


def get_config_path(custom_path: Path | None = None) -> Path:
    """Locate the config file.

    custom_path wins; otherwise $XDG_CONFIG_HOME/pairlink/config.yaml,
    falling back to ~/.config when XDG_CONFIG_HOME is unset.
    """
    if custom_path is not None:
        return custom_path
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "pairlink" / "config.yaml"


def _default_file_reader(path: Path) -> dict[str, Any] | None:
    """Read YAML from disk; unreadable files count as absent."""
    try:
        content = path.read_text()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning(f"Cannot read config {path}: {e}")
        return None

    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring invalid YAML in {path}: {e}")
        return None


def _number(data: dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got {value!r}")


def load_config(
    path: Path | None = None,
    file_reader: Callable[[Path], dict[str, Any] | None] | None = None,
) -> Config:
    """Load configuration from file.

    Args:
        path: Path to config file. If None, uses default path.
        file_reader: Injectable file reader for testing.

    Returns:
        Config object with values from file or defaults.

    Raises:
        ConfigError: If the file holds out-of-range values.
    """
    config_path = get_config_path(path)
    reader = file_reader or _default_file_reader

    data = reader(config_path)

    if not isinstance(data, dict):
        return Config()

    config = Config(
        server_url=data.get("server_url", Config.server_url),
        server_override_file=data.get(
            "server_override_file", Config.server_override_file
        ),
        poll_interval=_number(data, "poll_interval", Config.poll_interval),
        request_timeout=_number(data, "request_timeout", Config.request_timeout),
        digest_backend=data.get("digest_backend", Config.digest_backend),
        log_level=data.get("log_level", Config.log_level),
        log_file=data.get("log_file", Config.log_file),
    )
    config.validate()
    return config
