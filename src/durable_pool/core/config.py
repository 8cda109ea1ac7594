"""Configuration management for durable-pool.

Two layers:

- Application settings, loaded from TOML files with environment variable
  overrides via pydantic-settings.
- Connection configuration, parsed once from a pool's connection URI
  (``<scheme>://<bucket>?dsn=<path>``).
"""

from __future__ import annotations

import math
import tomllib
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlsplit

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from durable_pool.core.codec import DEFAULT_CODEC, get_codec
from durable_pool.core.errors import ConfigurationError

DEFAULT_BUSY_TIMEOUT = 5.0


class GeneralSettings(BaseSettings):
    """General application settings."""

    model_config = SettingsConfigDict(env_prefix="DURABLE_POOL_")

    log_level: str = Field(default="INFO", description="Log level")
    json_logs: bool = Field(default=False, description="Enable JSON structured logging")


class PoolSettings(BaseSettings):
    """Pool defaults used by the CLI."""

    model_config = SettingsConfigDict(env_prefix="DURABLE_POOL_POOL_")

    default_uri: str | None = Field(default=None, description="Connection URI used when none given")


class TracingSettings(BaseSettings):
    """OpenTelemetry tracing settings."""

    model_config = SettingsConfigDict(env_prefix="DURABLE_POOL_TRACING_")

    enabled: bool = Field(default=False, description="Enable tracing")
    otlp_endpoint: str = Field(default="http://localhost:4317", description="OTLP endpoint")
    service_name: str = Field(default="durable-pool", description="Service name")


class Settings(BaseSettings):
    """Main application settings.

    Configuration is loaded in the following order (later overrides earlier):
    1. Default values in this class
    2. Values from durable_pool.toml (if exists)
    3. Environment variables (DURABLE_POOL_* prefix)
    """

    model_config = SettingsConfigDict(env_prefix="DURABLE_POOL_")

    general: GeneralSettings = Field(default_factory=GeneralSettings)
    pool: PoolSettings = Field(default_factory=PoolSettings)
    tracing: TracingSettings = Field(default_factory=TracingSettings)

    @classmethod
    def from_toml(cls, path: Path | str) -> Settings:
        """Load settings from a TOML file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
        """
        path = Path(path)
        with path.open("rb") as f:
            data = tomllib.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Settings:
        """Create settings from a dictionary."""
        return cls(
            general=GeneralSettings(**data.get("general", {})),
            pool=PoolSettings(**data.get("pool", {})),
            tracing=TracingSettings(**data.get("tracing", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to a dictionary."""
        return {
            "general": self.general.model_dump(),
            "pool": self.pool.model_dump(),
            "tracing": self.tracing.model_dump(),
        }


def _find_config_file() -> Path | None:
    """Find the config file in standard locations."""
    candidates = [
        Path("durable_pool.toml"),
        Path.home() / ".config" / "durable-pool" / "config.toml",
    ]
    for path in candidates:
        if path.exists():
            return path
    return None


@lru_cache
def get_settings(config_path: str | None = None) -> Settings:
    """Get the application settings.

    The result is cached after first call.

    Args:
        config_path: Optional explicit path to config file.
    """
    settings = Settings()

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        settings = Settings.from_toml(path)

    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Options parsed from a pool connection URI.

    Attributes:
        scheme: Backend scheme, used only to pick a constructor.
        bucket: Namespace inside the store.
        dsn: Filesystem path of the store file.
        codec: Name of the item codec.
        busy_timeout: Seconds to wait for the store's writer lock.
    """

    scheme: str
    bucket: str
    dsn: str
    codec: str = DEFAULT_CODEC
    busy_timeout: float = DEFAULT_BUSY_TIMEOUT

    @classmethod
    def from_uri(cls, uri: str, *, require_dsn: bool = True) -> ConnectionConfig:
        """Parse a connection URI.

        Args:
            uri: ``<scheme>://<bucket>?dsn=<path>[&codec=<name>][&busy_timeout=<s>]``.
            require_dsn: Whether a missing dsn is an error. Backends that
                keep no file (memory) pass False.

        Raises:
            ConfigurationError: If the URI is malformed or a required part
                is missing.
        """
        try:
            parts = urlsplit(uri)
            query = parse_qs(parts.query, keep_blank_values=True)
        except (TypeError, ValueError, AttributeError) as e:
            msg = f"Invalid connection URI: {uri!r}"
            raise ConfigurationError(msg) from e

        if not parts.scheme:
            msg = f"Missing scheme in connection URI: {uri!r}"
            raise ConfigurationError(msg)

        # Host part only; userinfo is not part of the bucket name
        bucket = parts.netloc.rpartition("@")[2]
        if not bucket:
            msg = "Missing bucket"
            raise ConfigurationError(msg)

        dsn = _first(query, "dsn")
        if require_dsn and not dsn:
            msg = "Missing dsn"
            raise ConfigurationError(msg)

        codec = _first(query, "codec") or DEFAULT_CODEC
        get_codec(codec)

        raw_timeout = _first(query, "busy_timeout")
        busy_timeout = DEFAULT_BUSY_TIMEOUT
        if raw_timeout:
            busy_timeout = _parse_timeout(raw_timeout)

        return cls(
            scheme=parts.scheme,
            bucket=bucket,
            dsn=dsn,
            codec=codec,
            busy_timeout=busy_timeout,
        )


def _first(query: dict[str, list[str]], name: str) -> str:
    values = query.get(name)
    return values[0] if values else ""


def _parse_timeout(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        value = math.nan
    if not math.isfinite(value) or value < 0:
        msg = f"Invalid busy_timeout: {raw!r}"
        raise ConfigurationError(msg)
    return value
