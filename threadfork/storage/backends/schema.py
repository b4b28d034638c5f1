"""SQLite schema management: DDL, migrations, and version control."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable

from threadfork.errors import DatabaseError
from threadfork.lib.log import get_logger

logger = get_logger(__name__)
SCHEMA_VERSION = 1


# Core DDL applied on first connection.
SCHEMA_DDL = """
        CREATE TABLE IF NOT EXISTS messages (
            message_id TEXT PRIMARY KEY,
            thread_id TEXT NOT NULL,
            content TEXT NOT NULL DEFAULT '',
            role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
            created_at TEXT NOT NULL,
            parent_message_id TEXT,
            variant_of_id TEXT REFERENCES messages(message_id),
            variant_sequence INTEGER CHECK (variant_sequence IS NULL OR variant_sequence >= 1),
            branch_id TEXT,
            conversation_branch_id TEXT NOT NULL DEFAULT 'main',
            branch_point TEXT,
            model TEXT,
            status TEXT NOT NULL DEFAULT 'complete'
                CHECK (status IN ('pending', 'complete', 'failed')),
            error TEXT
        );
"""

# Indexes are (re)applied after every migration as well.
INDEX_DDL = """
        CREATE INDEX IF NOT EXISTS idx_messages_thread
        ON messages(thread_id, created_at, message_id);

        CREATE UNIQUE INDEX IF NOT EXISTS idx_messages_variant_sequence
        ON messages(variant_of_id, variant_sequence) WHERE variant_of_id IS NOT NULL;

        CREATE INDEX IF NOT EXISTS idx_messages_conversation_branch
        ON messages(conversation_branch_id, created_at, message_id);
"""


def _apply_schema(conn: sqlite3.Connection) -> None:
    """Apply fresh schema at version SCHEMA_VERSION."""
    conn.executescript(SCHEMA_DDL)
    conn.executescript(INDEX_DDL)
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    conn.commit()


# Upgrade steps keyed by the version they start from; none exist yet.
_MIGRATIONS: dict[int, Callable[[sqlite3.Connection], None]] = {}


def _run_migrations(conn: sqlite3.Connection, current_version: int) -> None:
    """Run migrations from current_version up to SCHEMA_VERSION."""
    for version in range(current_version, SCHEMA_VERSION):
        migration = _MIGRATIONS.get(version)
        if migration is None:
            raise DatabaseError(f"No migration path from schema v{version} to v{version + 1}")
        logger.info("schema_migration", from_version=version, to_version=version + 1)
        migration(conn)
    conn.executescript(INDEX_DDL)
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    conn.commit()


def _ensure_schema(conn: sqlite3.Connection) -> None:
    """Create or upgrade the schema on this connection."""
    row = conn.execute("PRAGMA user_version").fetchone()
    current_version = row[0] if row else 0
    if current_version == 0:
        _apply_schema(conn)
        return
    if current_version > SCHEMA_VERSION:
        raise DatabaseError(
            f"Database schema v{current_version} is newer than supported v{SCHEMA_VERSION}"
        )
    if current_version < SCHEMA_VERSION:
        _run_migrations(conn, current_version)


__all__ = ["INDEX_DDL", "SCHEMA_DDL", "SCHEMA_VERSION", "_apply_schema", "_ensure_schema", "_run_migrations"]
