"""Protocol definitions for external collaborators of the branching core.

The branching core never talks to SQLite directly; it only needs the
contract below. Any store that provides atomic single-record writes,
indexed scans and a conditional variant insert can be plugged in.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from threadfork.storage.store import MessageRecord
from threadfork.types import MAIN_BRANCH


@runtime_checkable
class MessageStore(Protocol):
    """Durable keyed storage of message records.

    Example implementations:
    - SQLite (threadfork.storage.backends.sqlite)
    """

    def get(self, message_id: str) -> MessageRecord:
        """Return the message.

        Raises:
            MessageNotFoundError: If the message does not exist
        """
        ...

    def query_by_variant_of(self, root_id: str) -> list[MessageRecord]:
        """Return all variants of a root, ordered by variant sequence."""
        ...

    def query_by_branch(
        self, conversation_branch_id: str, thread_id: str | None = None
    ) -> list[MessageRecord]:
        """Return messages on a conversation branch in (created_at, id) order."""
        ...

    def query_thread(self, thread_id: str) -> list[MessageRecord]:
        """Return every message in a thread in (created_at, id) order."""
        ...

    def preceding_messages(
        self,
        thread_id: str,
        before: datetime,
        *,
        conversation_branch_id: str = MAIN_BRANCH,
        limit: int = 10,
    ) -> list[MessageRecord]:
        """Return at most ``limit`` messages created before ``before``, newest first."""
        ...

    def insert_message(self, record: MessageRecord) -> MessageRecord:
        """Persist a new message and return it with its assigned id."""
        ...

    def insert_variant_atomic(self, record: MessageRecord, expected_count: int) -> MessageRecord:
        """Persist a variant if its root still has exactly ``expected_count`` variants.

        Raises:
            ConstraintViolation: If the variant count changed or the
                (variant_of_id, variant_sequence) pair is taken
        """
        ...

    def complete_message(self, message_id: str, content: str) -> MessageRecord:
        """Attach content to a message and mark it complete."""
        ...

    def fail_message(self, message_id: str, error: str) -> MessageRecord:
        """Mark a message's generation as failed."""
        ...


__all__ = ["MessageStore"]
