"""Configuration using Pydantic Settings for automatic env var support."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError
from .paths import config_home, data_home
from .types import MAX_VARIANTS

CONFIG_ENV = "THREADFORK_CONFIG"
DEFAULT_CONFIG_NAME = "config.json"


def _default_db_path() -> Path:
    return data_home() / "threadfork.db"


class Settings(BaseSettings):
    """Runtime settings.

    Supports:
    - JSON config files
    - Environment variables (THREADFORK_*)
    - Automatic type validation
    """

    db_path: Path = Field(default_factory=_default_db_path)
    max_variants: int = Field(default=MAX_VARIANTS, ge=1, le=MAX_VARIANTS)
    insert_attempts: int = Field(default=5, ge=1)
    retry_jitter: float = Field(default=0.01, ge=0)
    ancestry_scan_depth: int = Field(default=10, ge=1)
    max_resolve_hops: int = Field(default=32, ge=1)
    verbose: bool = False
    json_logs: bool = False

    config_path: Optional[Path] = Field(default=None, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="THREADFORK_",
        extra="forbid",
    )

    @field_validator("db_path", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v

    @classmethod
    def from_json_file(cls, path: Path) -> "Settings":
        """Load settings from a JSON file; environment variables still apply."""
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        try:
            return cls(**data, config_path=path)
        except ValidationError as exc:
            raise ConfigError(f"Invalid config file {path}: {exc}") from exc

    @classmethod
    def load(cls, explicit: Path | None = None) -> "Settings":
        """Load settings from the standard locations."""
        env_path = os.environ.get(CONFIG_ENV)
        if explicit is not None:
            return cls.from_json_file(explicit.expanduser())
        if env_path:
            path = Path(env_path).expanduser()
            if not path.exists():
                raise ConfigError(f"{CONFIG_ENV} points to a missing file: {path}")
            return cls.from_json_file(path)

        default_path = config_home() / DEFAULT_CONFIG_NAME
        if default_path.exists():
            return cls.from_json_file(default_path)

        try:
            return cls()
        except ValidationError as exc:
            raise ConfigError(f"Invalid THREADFORK_* environment: {exc}") from exc


def load_settings(explicit: Path | None = None) -> Settings:
    """Load the application settings."""
    return Settings.load(explicit)


__all__ = ["Settings", "load_settings", "CONFIG_ENV"]
