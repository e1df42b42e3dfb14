"""Relay server URL resolution.

Resolution order (first non-empty wins):
1. Explicit argument (e.g. --server, or a URL override at call time)
2. Persisted override (ServerConfigStore)
3. PAIRLINK_SERVER_URL environment variable ("dynamic" = local dev server)
4. server_url from the config file
5. PRODUCTION_SERVER_URL

The persisted override lives in its own file so it survives independently
of any stored credentials.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping
from urllib.parse import urlparse

from pairlink.errors import ConfigError

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_LOCAL_SERVER_PORT",
    "ENV_SERVER_URL",
    "PRODUCTION_SERVER_URL",
    "ServerConfigStore",
    "ServerInfo",
    "default_server_url",
    "get_server_info",
    "is_using_custom_server",
    "resolve_server_url",
    "validate_server_url",
]

PRODUCTION_SERVER_URL = "https://api.cluster-fluster.com"
DEFAULT_LOCAL_SERVER_PORT = 3005
ENV_SERVER_URL = "PAIRLINK_SERVER_URL"
DYNAMIC = "dynamic"


def validate_server_url(url: str | None) -> tuple[bool, str | None]:
    """Check that url is a usable relay URL.

    Returns:
        (True, None) if valid, otherwise (False, reason).
    """
    if not url or not url.strip():
        return False, "Server URL cannot be empty"

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False, "Invalid URL format"

    if parsed.scheme not in ("http", "https"):
        return False, "Server URL must use HTTP or HTTPS protocol"
    if not parsed.hostname:
        return False, "Invalid URL format"
    try:
        parsed.port
    except ValueError:
        return False, "Invalid URL format"
    return True, None


class ServerConfigStore:
    """Persisted server URL override.

    Stored as JSON with owner-only permissions.

    Attributes:
        path: JSON file path.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def get(self) -> str | None:
        """Return the stored override, or None if unset or unreadable."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable server override {self.path}: {e}")
            return None

        url = data.get("server_url") if isinstance(data, dict) else None
        if isinstance(url, str) and url.strip():
            return url.strip()
        return None

    def set(self, url: str | None) -> None:
        """Store an override; None or blank clears it.

        Raises:
            ConfigError: If url is not a valid server URL.
        """
        if url is None or not url.strip():
            self.clear()
            return

        url = url.strip()
        valid, error = validate_server_url(url)
        if not valid:
            raise ConfigError(error)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps({"server_url": url}, indent=2)

        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            os.write(fd, data.encode())
        finally:
            os.close(fd)
        logger.info(f"Server override set to {url}")

    def clear(self) -> None:
        """Remove the stored override."""
        if self.path.exists():
            self.path.unlink()
            logger.info("Server override cleared")


def _from_env(environ: Mapping[str, str]) -> str | None:
    value = environ.get(ENV_SERVER_URL, "").strip()
    if not value:
        return None
    if value == DYNAMIC:
        return f"http://localhost:{DEFAULT_LOCAL_SERVER_PORT}"
    return value


def resolve_server_url(
    explicit: str | None = None,
    store: ServerConfigStore | None = None,
    environ: Mapping[str, str] | None = None,
    configured: str | None = None,
) -> str:
    """Resolve the relay URL in precedence order.

    Args:
        explicit: Caller-supplied URL, wins when non-empty.
        store: Persisted override store.
        environ: Environment mapping (defaults to os.environ).
        configured: URL from the config file.

    Returns:
        Server URL without trailing slash.
    """
    env = os.environ if environ is None else environ

    candidates = (
        explicit,
        store.get() if store is not None else None,
        _from_env(env),
        configured,
    )
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip().rstrip("/")
    return PRODUCTION_SERVER_URL


def default_server_url(environ: Mapping[str, str] | None = None) -> str:
    """URL used when no explicit, persisted or configured URL is set."""
    env = os.environ if environ is None else environ
    return (_from_env(env) or PRODUCTION_SERVER_URL).rstrip("/")


def is_using_custom_server(url: str, environ: Mapping[str, str] | None = None) -> bool:
    """True unless url is the production relay or the environment default."""
    url = url.rstrip("/")
    return url not in (PRODUCTION_SERVER_URL, default_server_url(environ))


@dataclass(frozen=True)
class ServerInfo:
    """Display information about a relay URL."""

    hostname: str
    port: int | None
    is_custom: bool


def get_server_info(url: str, environ: Mapping[str, str] | None = None) -> ServerInfo:
    """Describe url for display. Unparseable URLs are shown verbatim."""
    is_custom = is_using_custom_server(url, environ)
    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError:
        return ServerInfo(hostname=url, port=None, is_custom=is_custom)
    return ServerInfo(
        hostname=parsed.hostname or url,
        port=port,
        is_custom=is_custom,
    )
