"""Configuration for the cloud storage client.

Two layers live here:

- :class:`Credential` and :class:`ClientConfig` are immutable values handed
  to :class:`~cloudstore.api.CloudStoreClient`. The client never reads
  configuration on its own.
- :class:`ConfigStore` reads and writes the persisted settings file
  (``~/.cloud-storage-cli/config``) and applies environment overrides. The
  CLI uses it to resolve a :class:`ClientConfig`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import dotenv_values, set_key, unset_key

from .exceptions import CloudStoreConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_TIMEOUT = 30.0

CONFIG_DIR_NAME = ".cloud-storage-cli"
CONFIG_FILE_NAME = "config"
CONFIG_PATH_ENV = "CLOUD_STORAGE_CONFIG"
ENV_PREFIX = "CLOUD_STORAGE_"

API_KEY_HEADER = "X-API-Key"

CONFIG_KEYS = ("api_url", "access_token", "refresh_token", "api_key")
SENSITIVE_KEYS = ("access_token", "refresh_token", "api_key")


@dataclass(frozen=True)
class Credential:
    """An API key or bearer token used to authenticate requests."""

    api_key: str | None = None
    access_token: str | None = None

    def auth_headers(self) -> dict[str, str]:
        """Return the single authentication header for a request.

        The API key wins when both credentials are set; the server applies
        the same precedence. With neither set no header is returned and the
        server is expected to reject protected endpoints.
        """
        if self.api_key:
            return {API_KEY_HEADER: self.api_key}
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {}

    @property
    def kind(self) -> str:
        """Name of the active credential ("api_key", "token" or "none")."""
        if self.api_key:
            return "api_key"
        if self.access_token:
            return "token"
        return "none"


@dataclass(frozen=True)
class ClientConfig:
    """Resolved base URL and credential for one client instance."""

    base_url: str = DEFAULT_API_URL
    credential: Credential = Credential()
    timeout: float = DEFAULT_TIMEOUT

    def with_overrides(
        self, api_url: str | None = None, api_key: str | None = None
    ) -> ClientConfig:
        """Return a copy with explicit command-line overrides applied."""
        config = self
        if api_url:
            config = replace(config, base_url=api_url)
        if api_key:
            config = replace(
                config, credential=replace(config.credential, api_key=api_key)
            )
        return config


@dataclass
class Settings:
    """Persisted settings as read from file and environment."""

    api_url: str = DEFAULT_API_URL
    access_token: str = ""
    refresh_token: str = ""
    api_key: str = ""

    def to_client_config(self) -> ClientConfig:
        return ClientConfig(
            base_url=self.api_url or DEFAULT_API_URL,
            credential=Credential(
                api_key=self.api_key or None,
                access_token=self.access_token or None,
            ),
        )


def normalize_key(key: str) -> str:
    """Map user-facing key spellings (``api-url``, ``apiUrl``) to ``api_url``.

    Raises:
        CloudStoreConfigError: If the key is not a known setting
    """
    normalized = key.strip().replace("-", "_")
    if normalized.lower() in CONFIG_KEYS:
        normalized = normalized.lower()
    else:
        # camelCase spelling, e.g. apiKey
        snake = "".join(f"_{c.lower()}" if c.isupper() else c for c in normalized)
        normalized = snake.lstrip("_")
    if normalized not in CONFIG_KEYS:
        raise CloudStoreConfigError(f"unknown config key: {key}")
    return normalized


def is_sensitive_key(key: str) -> bool:
    """Return True if the key holds a secret that should be masked."""
    try:
        return normalize_key(key) in SENSITIVE_KEYS
    except CloudStoreConfigError:
        return False


def mask_value(value: str) -> str:
    """Mask a secret for display.

    Examples:
        >>> mask_value("")
        '(not set)'
        >>> mask_value("short")
        '***'
        >>> mask_value("abcd1234efgh5678")
        'abcd...5678'
    """
    if not value:
        return "(not set)"
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-4:]}"


class ConfigStore:
    """Reads and writes the settings file.

    Environment variables ``CLOUD_STORAGE_API_URL``,
    ``CLOUD_STORAGE_ACCESS_TOKEN``, ``CLOUD_STORAGE_REFRESH_TOKEN`` and
    ``CLOUD_STORAGE_API_KEY`` take precedence over the file.
    """

    def __init__(self, config_path: Path | None = None):
        self._config_path = config_path

    def get_config_path(self) -> Path:
        """Get the path of the settings file."""
        if self._config_path is not None:
            return self._config_path
        env_path = os.environ.get(CONFIG_PATH_ENV)
        if env_path:
            return Path(env_path).expanduser()
        return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME

    def _read_file(self) -> dict[str, str]:
        path = self.get_config_path()
        if not path.exists():
            return {}
        try:
            values = dotenv_values(path, interpolate=False)
        except OSError as e:
            raise CloudStoreConfigError(f"failed to read config file: {e}") from e
        return {k.lower(): v for k, v in values.items() if v is not None}

    def load(self) -> Settings:
        """Load settings from file, then apply environment overrides."""
        values = self._read_file()
        for key in CONFIG_KEYS:
            env_value = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
            if env_value:
                values[key] = env_value

        settings = Settings(
            api_url=values.get("api_url") or DEFAULT_API_URL,
            access_token=values.get("access_token", ""),
            refresh_token=values.get("refresh_token", ""),
            api_key=values.get("api_key", ""),
        )
        logger.debug("Loaded settings from %s", self.get_config_path())
        return settings

    def client_config(
        self, api_url: str | None = None, api_key: str | None = None
    ) -> ClientConfig:
        """Resolve the ClientConfig for this invocation."""
        return self.load().to_client_config().with_overrides(api_url, api_key)

    def get_value(self, key: str) -> str:
        """Get a single setting by name."""
        return getattr(self.load(), normalize_key(key))

    def set_value(self, key: str, value: str) -> None:
        """Persist a single setting.

        An empty value removes the key from the file.
        """
        name = normalize_key(key)
        path = self.get_config_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if value:
                path.touch(mode=0o600, exist_ok=True)
                set_key(path, name.upper(), value, quote_mode="never")
            elif path.exists():
                unset_key(path, name.upper())
        except OSError as e:
            raise CloudStoreConfigError(f"failed to write config file: {e}") from e
        logger.debug("Saved %s to %s", name, path)

    def save_tokens(self, access_token: str, refresh_token: str) -> None:
        """Store the tokens returned by login or refresh."""
        self.set_value("access_token", access_token)
        self.set_value("refresh_token", refresh_token)

    def clear_tokens(self) -> None:
        """Remove stored tokens (logout)."""
        self.set_value("access_token", "")
        self.set_value("refresh_token", "")

    def get_stored_tokens(self) -> tuple[str, str]:
        """Return (access_token, refresh_token)."""
        settings = self.load()
        return settings.access_token, settings.refresh_token


config = ConfigStore()
