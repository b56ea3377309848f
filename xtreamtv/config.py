"""
Configuration management for XtreamTV.

Handles loading, validation, and access to application configuration.
Provider credentials are read once at startup and never change afterwards.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

# Global configuration instance
_config: Optional["XtreamTVConfig"] = None


class ProviderConfig(BaseModel):
    """Provider endpoint and credentials."""
    base_url: str = ""
    username: str = ""
    password: str = ""

    @field_validator("username", "password", mode="before")
    @classmethod
    def coerce_numeric(cls, value):
        """Unquoted YAML credentials like 1234 load as numbers."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class FetchConfig(BaseModel):
    """HTTP fetch and retry settings."""
    retry_delays: list[float] = Field(default_factory=lambda: [1.0, 2.0, 5.0])
    request_timeout: float = 15.0  # Per attempt, seconds
    user_agent: str = "XtreamTV/1.0"

    @field_validator("retry_delays")
    @classmethod
    def validate_retry_delays(cls, value: list[float]) -> list[float]:
        """Delays must be non-negative."""
        if any(delay < 0 for delay in value):
            raise ValueError("retry_delays must be >= 0")
        return value

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, value: float) -> float:
        """Timeout must be positive."""
        if value <= 0:
            raise ValueError("request_timeout must be > 0")
        return value


class CacheSettings(BaseModel):
    """Response cache TTLs (seconds) per data kind."""
    epg_ttl: int = 300            # 5 minutes, programs change
    streams_ttl: int = 600        # 10 minutes
    movie_info_ttl: int = 1800    # 30 minutes, rarely changes
    sweep_interval: float = 300.0  # Background purge period

    @field_validator("epg_ttl", "streams_ttl", "movie_info_ttl")
    @classmethod
    def validate_ttl(cls, value: int, info) -> int:
        """TTLs must be positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("sweep_interval")
    @classmethod
    def validate_sweep_interval(cls, value: float) -> float:
        """Sweep period must be positive."""
        if value <= 0:
            raise ValueError("sweep_interval must be > 0")
        return value


class ProgressConfig(BaseModel):
    """Watch progress persistence."""
    persist: bool = True
    database_url: str = "sqlite:///./xtreamtv.db"
    storage_key: str = "xtreamtv_progress"
    max_entries: int = 100
    max_age_days: int = 30

    @field_validator("max_entries", "max_age_days")
    @classmethod
    def validate_positive(cls, value: int, info) -> int:
        """Limits must be positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: str = "logs/xtreamtv.log"
    max_size: str = "10MB"
    backup_count: int = 5
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    to_console: bool = True
    to_file: bool = True

    @property
    def max_bytes(self) -> int:
        """Parse max_size ("10MB", "512KB", "1048576") into bytes."""
        value = self.max_size.strip().upper()
        for suffix, factor in (("GB", 1024**3), ("MB", 1024**2), ("KB", 1024), ("B", 1)):
            if value.endswith(suffix):
                return int(float(value[: -len(suffix)]) * factor)
        return int(value)


class XtreamTVConfig(BaseModel):
    """Main XtreamTV configuration."""
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> XtreamTVConfig:
    """
    Load configuration from file.

    Args:
        config_path: Path to config file. Defaults to config.yaml in project root.

    Returns:
        Loaded and validated configuration.
    """
    global _config

    if config_path is None:
        # Look for config.yaml in current directory or project root
        possible_paths = [
            Path("config.yaml"),
            Path(__file__).parent.parent / "config.yaml",
        ]
        for path in possible_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data: dict[str, Any] = {}

    if config_path and Path(config_path).exists():
        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    env_overrides = _get_env_overrides()
    _deep_merge(config_data, env_overrides)

    _config = XtreamTVConfig(**config_data)
    return _config


def get_config() -> XtreamTVConfig:
    """
    Get the current configuration.

    Returns:
        Current configuration (loads default if not yet loaded).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> XtreamTVConfig:
    """
    Reload configuration from disk.

    Returns:
        Freshly loaded configuration.
    """
    global _config
    _config = None
    return load_config()


# Values taken verbatim; a numeric password must stay a string
_RAW_ENV_VARS = {"XTREAM_BASE_URL", "XTREAM_USERNAME", "XTREAM_PASSWORD"}


def _get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}

    # Map of environment variables to config paths
    env_map = {
        "XTREAM_BASE_URL": ("provider", "base_url"),
        "XTREAM_USERNAME": ("provider", "username"),
        "XTREAM_PASSWORD": ("provider", "password"),
        "XTREAMTV_DATABASE_URL": ("progress", "database_url"),
        "XTREAMTV_LOG_LEVEL": ("logging", "level"),
        "XTREAMTV_REQUEST_TIMEOUT": ("fetch", "request_timeout"),
    }

    for env_var, path in env_map.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        if env_var in _RAW_ENV_VARS:
            _set_nested(overrides, path, value)
        else:
            _set_nested(overrides, path, _parse_env_value(value))

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    # Boolean
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False

    # Integer
    try:
        return int(value)
    except ValueError:
        pass

    # Float
    try:
        return float(value)
    except ValueError:
        pass

    return value


def _set_nested(d: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    """Set a nested dictionary value from a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Deep merge override into base dictionary."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
