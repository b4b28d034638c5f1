"""Shared filesystem paths for threadfork."""

from __future__ import annotations

import os
from pathlib import Path


def _xdg_path(env_var: str, fallback: Path) -> Path:
    raw = os.environ.get(env_var)
    if raw:
        return Path(raw).expanduser()
    return fallback


def config_home() -> Path:
    return _xdg_path("XDG_CONFIG_HOME", Path.home() / ".config") / "threadfork"


def data_home() -> Path:
    return _xdg_path("XDG_DATA_HOME", Path.home() / ".local/share") / "threadfork"


__all__ = ["config_home", "data_home"]
