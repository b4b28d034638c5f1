"""SQLite message store implementation."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from threadfork.errors import (
    ConstraintViolation,
    DatabaseError,
    DataIntegrityError,
    MessageNotFoundError,
)
from threadfork.lib.log import get_logger
from threadfork.storage.backends.connection import default_db_path, open_connection
from threadfork.storage.store import (
    MessageRecord,
    MessageStatus,
    format_timestamp,
    new_message_id,
    parse_timestamp,
)
from threadfork.types import MAIN_BRANCH

LOGGER = get_logger(__name__)

_COLUMNS = (
    "message_id",
    "thread_id",
    "content",
    "role",
    "created_at",
    "parent_message_id",
    "variant_of_id",
    "variant_sequence",
    "branch_id",
    "conversation_branch_id",
    "branch_point",
    "model",
    "status",
    "error",
)

_INSERT_SQL = f"""
    INSERT INTO messages ({", ".join(_COLUMNS)})
    VALUES ({", ".join("?" for _ in _COLUMNS)})
"""


def _row_to_message(row: sqlite3.Row) -> MessageRecord:
    """Map a SQLite row to a MessageRecord."""
    try:
        return MessageRecord(
            message_id=row["message_id"],
            thread_id=row["thread_id"],
            content=row["content"] or "",
            role=row["role"],
            created_at=parse_timestamp(row["created_at"]),
            parent_message_id=row["parent_message_id"],
            variant_of_id=row["variant_of_id"],
            variant_sequence=row["variant_sequence"],
            branch_id=row["branch_id"],
            conversation_branch_id=row["conversation_branch_id"] or MAIN_BRANCH,
            branch_point=row["branch_point"],
            model=row["model"],
            status=row["status"],
            error=row["error"],
        )
    except ValueError as exc:
        raise DatabaseError(f"Corrupt message row {row['message_id']}: {exc}") from exc


def _record_params(record: MessageRecord) -> tuple[Any, ...]:
    return (
        record.message_id,
        record.thread_id,
        record.content,
        record.role.value,
        format_timestamp(record.created_at),
        record.parent_message_id,
        record.variant_of_id,
        record.variant_sequence,
        record.branch_id,
        record.conversation_branch_id,
        record.branch_point,
        record.model,
        record.status.value,
        record.error,
    )


def _is_sequence_conflict(exc: sqlite3.IntegrityError) -> bool:
    text = str(exc)
    return "UNIQUE" in text and "variant_sequence" in text


class SQLiteMessageStore:
    """SQLite storage for message records.

    Thread Safety:
        - Each thread gets its own connection via threading.local();
          close() closes the connections of every thread
        - Transactions (begin/commit/rollback) are connection-scoped
        - Top-level transactions use BEGIN IMMEDIATE, so two writers
          serialize on the database lock instead of failing on promotion

    The variant index ``UNIQUE(variant_of_id, variant_sequence)`` backs
    ``insert_variant_atomic``: a conflicting insert surfaces as
    ConstraintViolation rather than a duplicate sequence.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = Path(db_path) if db_path is not None else default_db_path()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        # Every connection handed out, whichever thread opened it
        self._connections_lock = threading.Lock()
        self._connections: list[sqlite3.Connection] = []
        self._generation = 0

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def connection_count(self) -> int:
        """Number of open connections across all threads."""
        with self._connections_lock:
            return len(self._connections)

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the thread-local database connection.

        A connection left over from before ``close()`` is replaced.
        """
        conn = getattr(self._local, "conn", None)
        if conn is None or self._local.generation != self._generation:
            conn = open_connection(self._db_path)
            with self._connections_lock:
                self._connections.append(conn)
                self._local.generation = self._generation
            self._local.conn = conn
            self._local.transaction_depth = 0
        return conn

    # --- Transactions ---

    def begin(self) -> None:
        """Begin a transaction or nested savepoint."""
        conn = self._get_connection()
        if self._local.transaction_depth == 0:
            conn.execute("BEGIN IMMEDIATE")
        else:
            conn.execute(f"SAVEPOINT sp_{self._local.transaction_depth}")
        self._local.transaction_depth += 1

    def commit(self) -> None:
        """Commit the current transaction or release savepoint."""
        if getattr(self._local, "transaction_depth", 0) <= 0:
            raise DatabaseError("No active transaction to commit")

        conn = self._get_connection()
        self._local.transaction_depth -= 1

        if self._local.transaction_depth == 0:
            conn.commit()
        else:
            conn.execute(f"RELEASE SAVEPOINT sp_{self._local.transaction_depth}")

    def rollback(self) -> None:
        """Rollback to the last begin() or savepoint."""
        if getattr(self._local, "transaction_depth", 0) <= 0:
            raise DatabaseError("No active transaction to rollback")

        conn = self._get_connection()
        self._local.transaction_depth -= 1

        if self._local.transaction_depth == 0:
            conn.rollback()
        else:
            conn.execute(f"ROLLBACK TO SAVEPOINT sp_{self._local.transaction_depth}")

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Context manager for transactions.

        Example:
            with store.transaction():
                store.insert_message(first)
                store.insert_message(second)
        """
        self.begin()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise

    def close(self) -> None:
        """Close every connection this store opened, in all threads.

        Call it once worker threads are done with the store; a thread that
        uses the store afterwards transparently opens a new connection.
        """
        with self._connections_lock:
            connections, self._connections = self._connections, []
            self._generation += 1
        for conn in connections:
            conn.close()
        self._local.conn = None
        self._local.transaction_depth = 0

    # --- Reads ---

    def get(self, message_id: str) -> MessageRecord:
        """Retrieve a message by ID.

        Raises:
            MessageNotFoundError: If no message has this ID.
        """
        row = self._get_connection().execute(
            "SELECT * FROM messages WHERE message_id = ?",
            (message_id,),
        ).fetchone()
        if row is None:
            raise MessageNotFoundError(message_id)
        return _row_to_message(row)

    def query_by_variant_of(self, root_id: str) -> list[MessageRecord]:
        """All variants of a root, ordered by variant sequence."""
        rows = self._get_connection().execute(
            """
            SELECT * FROM messages
            WHERE variant_of_id = ?
            ORDER BY variant_sequence, message_id
            """,
            (root_id,),
        ).fetchall()
        return [_row_to_message(row) for row in rows]

    def count_variants(self, root_id: str) -> int:
        row = self._get_connection().execute(
            "SELECT COUNT(*) AS cnt FROM messages WHERE variant_of_id = ?",
            (root_id,),
        ).fetchone()
        return int(row["cnt"])

    def query_by_branch(
        self, conversation_branch_id: str, thread_id: str | None = None
    ) -> list[MessageRecord]:
        """Messages on a conversation branch in (created_at, message_id) order."""
        sql = "SELECT * FROM messages WHERE conversation_branch_id = ?"
        params: list[str] = [conversation_branch_id]
        if thread_id is not None:
            sql += " AND thread_id = ?"
            params.append(thread_id)
        sql += " ORDER BY created_at, message_id"
        rows = self._get_connection().execute(sql, params).fetchall()
        return [_row_to_message(row) for row in rows]

    def query_thread(self, thread_id: str) -> list[MessageRecord]:
        """Every message of a thread in (created_at, message_id) order."""
        rows = self._get_connection().execute(
            "SELECT * FROM messages WHERE thread_id = ? ORDER BY created_at, message_id",
            (thread_id,),
        ).fetchall()
        return [_row_to_message(row) for row in rows]

    def preceding_messages(
        self,
        thread_id: str,
        before: datetime,
        *,
        conversation_branch_id: str = MAIN_BRANCH,
        limit: int = 10,
    ) -> list[MessageRecord]:
        """Bounded backward scan: messages created before ``before``, newest first."""
        rows = self._get_connection().execute(
            """
            SELECT * FROM messages
            WHERE thread_id = ? AND conversation_branch_id = ? AND created_at < ?
            ORDER BY created_at DESC, message_id DESC
            LIMIT ?
            """,
            (thread_id, conversation_branch_id, format_timestamp(before), limit),
        ).fetchall()
        return [_row_to_message(row) for row in rows]

    # --- Writes ---

    def insert_message(self, record: MessageRecord) -> MessageRecord:
        """Persist a new message, assigning an ID when the record has none."""
        if record.message_id is None:
            record = record.model_copy(update={"message_id": new_message_id()})
        with self.transaction():
            self._get_connection().execute(_INSERT_SQL, _record_params(record))
        return record

    def insert_variant_atomic(self, record: MessageRecord, expected_count: int) -> MessageRecord:
        """Insert a variant only if its root still has ``expected_count`` variants.

        The count and the insert run inside one BEGIN IMMEDIATE transaction,
        so no other writer can add a variant of the same root in between.

        Raises:
            ConstraintViolation: The variant set changed since it was counted.
            MessageNotFoundError: The root does not exist.
        """
        root_id = record.variant_of_id
        if root_id is None:
            raise ValueError("insert_variant_atomic requires a variant record")
        if record.message_id is None:
            record = record.model_copy(update={"message_id": new_message_id()})

        with self.transaction():
            conn = self._get_connection()
            root_row = conn.execute(
                "SELECT variant_of_id FROM messages WHERE message_id = ?",
                (root_id,),
            ).fetchone()
            if root_row is None:
                raise MessageNotFoundError(root_id, referenced_by=record.message_id)
            if root_row["variant_of_id"] is not None:
                raise DataIntegrityError(f"Variant target {root_id} is itself a variant")
            actual = self.count_variants(root_id)
            if actual != expected_count:
                LOGGER.debug("variant_count_changed", root_id=root_id, expected=expected_count, actual=actual)
                raise ConstraintViolation(root_id, expected_count, actual)
            try:
                conn.execute(_INSERT_SQL, _record_params(record))
            except sqlite3.IntegrityError as exc:
                if _is_sequence_conflict(exc):
                    raise ConstraintViolation(root_id, expected_count) from exc
                raise
        return record

    def _update_content(
        self, message_id: str, *, content: str | None, status: MessageStatus, error: str | None
    ) -> MessageRecord:
        with self.transaction():
            cursor = self._get_connection().execute(
                """
                UPDATE messages
                SET content = COALESCE(?, content), status = ?, error = ?
                WHERE message_id = ?
                """,
                (content, status.value, error, message_id),
            )
            if cursor.rowcount == 0:
                raise MessageNotFoundError(message_id)
        return self.get(message_id)

    def complete_message(self, message_id: str, content: str) -> MessageRecord:
        """Attach generated content to a message and mark it complete."""
        return self._update_content(message_id, content=content, status=MessageStatus.COMPLETE, error=None)

    def fail_message(self, message_id: str, error: str) -> MessageRecord:
        """Record a generation failure; branching metadata is left untouched."""
        return self._update_content(message_id, content=None, status=MessageStatus.FAILED, error=error)


__all__ = ["SQLiteMessageStore"]
