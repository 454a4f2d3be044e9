"""
Centralized settings for dqlited.

All fields can be set through ``DQLITED_*`` environment variables (e.g.
``DQLITED_CLUSTER=10.0.0.1:9181,10.0.0.2:9181``) or a ``.env`` file.  CLI
options take these values as their defaults.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dqlited.core.errors import InvalidNodeIdError

DEFAULT_CLUSTER = "127.0.0.1:9181,127.0.0.1:9182,127.0.0.1:9183"


def split_addresses(value: str | Iterable[str]) -> list[str]:
    """Normalise ``"a:1,b:2"`` or ``["a:1", "b:2,c:3"]`` to a flat address list."""
    parts = [value] if isinstance(value, str) else list(value)
    return [addr.strip() for part in parts for addr in part.split(",") if addr.strip()]


class DqlitedSettings(BaseSettings):
    """dqlited configuration.

    Order of precedence (highest → lowest):
        1. Explicit CLI options
        2. Environment variables (``DQLITED_DATABASE``, ...)
        3. ``.env`` file
        4. Defaults below
    """

    model_config = SettingsConfigDict(
        env_prefix="DQLITED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Cluster ──────────────────────────────────────────────────
    cluster: str = Field(default=DEFAULT_CLUSTER, description="Comma separated node addresses")
    node_id: int = Field(default=1, description="Local node id (must be > 0)")
    address: str = Field(default="127.0.0.1:9181", description="Local node address")
    dir: str = Field(default="/tmp/dqlited", description="Node working directory")

    # ── Database ─────────────────────────────────────────────────
    database: str = Field(default="demo.db")
    driver: str = Field(default="http", description="http (cluster leader) or sqlite (local files in dir)")

    # ── Timeouts ─────────────────────────────────────────────────
    timeout: float = Field(default=60.0, description="Leader lookup timeout in seconds")
    handoff_timeout: float = Field(default=2.0, description="Shutdown handoff bound in seconds")
    probe_interval: float = Field(default=0.1, description="Pause between leader probe rounds")
    request_timeout: float = Field(default=5.0, description="Per-request HTTP timeout")

    # ── Retry ────────────────────────────────────────────────────
    retry_attempts: int = Field(default=10)
    retry_base_delay: float = Field(default=0.001, description="First backoff delay in seconds")

    # ── API ──────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=4001)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="console or json")

    @property
    def cluster_addresses(self) -> list[str]:
        return split_addresses(self.cluster)

    @field_validator("node_id")
    @classmethod
    def _positive_id(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("node_id must be greater than zero")
        return value

    @field_validator("driver")
    @classmethod
    def _known_driver(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("http", "sqlite"):
            raise ValueError("driver must be 'http' or 'sqlite'")
        return value

    @field_validator("retry_attempts")
    @classmethod
    def _positive_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("retry_attempts must be at least 1")
        return value


_settings_cache: dict[str, DqlitedSettings] = {}


def get_settings(*, _force_reload: bool = False) -> DqlitedSettings:
    """Load, validate and cache a :class:`DqlitedSettings` instance."""
    if _force_reload or "default" not in _settings_cache:
        _settings_cache["default"] = DqlitedSettings()
    return _settings_cache["default"]


def clear_settings_cache() -> None:
    _settings_cache.clear()


def parse_node_id(value: str | int) -> int:
    """Parse a node id argument.

    Raises:
        InvalidNodeIdError: if the value is not an integer greater than zero
    """
    try:
        node_id = int(str(value).strip())
    except ValueError as e:
        raise InvalidNodeIdError(value) from e
    if node_id <= 0:
        raise InvalidNodeIdError(value)
    return node_id
