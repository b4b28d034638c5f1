"""Message persistence."""

from threadfork.storage.backends import SQLiteMessageStore, create_store
from threadfork.storage.store import MessageRecord, MessageStatus

__all__ = ["MessageRecord", "MessageStatus", "SQLiteMessageStore", "create_store"]
