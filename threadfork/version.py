"""Installed version of threadfork.

Falls back to the ``pyproject.toml`` next to the package when running from
a source checkout that was never installed.
"""

from __future__ import annotations

import re
from importlib import metadata
from pathlib import Path

_PYPROJECT = Path(__file__).resolve().parents[1] / "pyproject.toml"
_VERSION_LINE = re.compile(r'^version\s*=\s*"(?P<version>[^"]+)"', re.MULTILINE)


def _source_checkout_version() -> str | None:
    try:
        text = _PYPROJECT.read_text(encoding="utf-8")
    except OSError:
        return None
    found = _VERSION_LINE.search(text)
    return found.group("version") if found else None


def _resolve_version() -> str:
    try:
        return metadata.version("threadfork")
    except metadata.PackageNotFoundError:
        return _source_checkout_version() or "0+unknown"


THREADFORK_VERSION = _resolve_version()

__all__ = ["THREADFORK_VERSION"]
