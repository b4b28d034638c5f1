"""Storage backend implementations for threadfork.

Backends satisfy the MessageStore protocol (threadfork.protocols).

Available backends:
- SQLiteMessageStore: SQLite-based storage (default)
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from threadfork.storage.backends.sqlite import SQLiteMessageStore

if TYPE_CHECKING:
    from threadfork.config import Settings
    from threadfork.protocols import MessageStore


def create_store(settings: Settings | None = None, db_path: Path | None = None) -> MessageStore:
    """Create a message store.

    Args:
        settings: Optional settings; ``settings.db_path`` is used when given.
        db_path: Optional path to database file. Takes precedence over settings.
    """
    if db_path is None and settings is not None:
        db_path = settings.db_path
    return SQLiteMessageStore(db_path=db_path)


__all__ = ["SQLiteMessageStore", "create_store"]
