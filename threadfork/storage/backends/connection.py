"""SQLite connection setup and defaults."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import threadfork.paths as _paths
from threadfork.storage.backends.schema import _ensure_schema

# Default SQLite connection timeout in seconds.  Prevents indefinite blocking
# when the database is locked by another writer.
DB_TIMEOUT = 30


def default_db_path() -> Path:
    """Return the default database path.

    Reads from threadfork.paths at call time (not import time) so that
    tests can monkeypatch XDG_DATA_HOME.
    """
    return _paths.data_home() / "threadfork.db"


def open_connection(path: Path) -> sqlite3.Connection:
    """Open a configured connection: Row factory, WAL, foreign keys, busy timeout, schema."""
    path.parent.mkdir(parents=True, exist_ok=True)
    # The owning store may close it from another thread
    conn = sqlite3.connect(path, timeout=DB_TIMEOUT, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout = {DB_TIMEOUT * 1000}")
    try:
        _ensure_schema(conn)
    except Exception:
        conn.close()
        raise
    return conn


__all__ = ["DB_TIMEOUT", "default_db_path", "open_connection"]
