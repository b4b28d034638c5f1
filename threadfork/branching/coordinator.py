"""Retry and edit orchestration.

One call to ``RetryCoordinator.retry`` resolves the clicked message's root,
decides the conversation branch, allocates the next variant sequence and
persists the new variant. Nothing is written unless the whole allocation
succeeds, and committed branching metadata is never rewritten afterwards.
"""

from __future__ import annotations

from datetime import datetime

from threadfork.branching.assigner import BranchAssignment, assign_branch
from threadfork.branching.resolver import resolve_root
from threadfork.branching.sequencer import VariantSequencer
from threadfork.config import Settings
from threadfork.errors import InvalidOperationError, MessageNotFoundError
from threadfork.lib.log import get_logger
from threadfork.lib.roles import Role
from threadfork.protocols import MessageStore
from threadfork.storage.store import MessageRecord, MessageStatus, utc_now
from threadfork.types import MAIN_BRANCH, ThreadId

logger = get_logger(__name__)


class RetryCoordinator:
    """Creates variants of messages and appends new turns to threads.

    Callers (the generation layer) are expected to have checked that the
    thread is not already generating and that the clicked message is not
    mid-stream; the coordinator does not re-derive that state.
    """

    def __init__(self, store: MessageStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or Settings()
        self._sequencer = VariantSequencer(
            store,
            max_variants=self._settings.max_variants,
            attempts=self._settings.insert_attempts,
            jitter=self._settings.retry_jitter,
        )

    @property
    def store(self) -> MessageStore:
        return self._store

    @property
    def sequencer(self) -> VariantSequencer:
        return self._sequencer

    def retry(self, clicked_message_id: str, *, model: str | None = None) -> MessageRecord:
        """Create the next variant of the clicked message's root.

        Assistant variants start empty and ``pending``; the generation layer
        fills them in with ``complete_message``. Retrying a user message
        re-sends its content unchanged.

        Raises:
            MessageNotFoundError: The message (or its root) does not exist.
            BranchLimitExceeded: The root already has the maximum number of variants.
            RetryExhaustedError: Concurrent retries kept colliding.
        """
        clicked = self._store.get(clicked_message_id)
        if clicked.role is Role.ASSISTANT:
            content, status = "", MessageStatus.PENDING
        else:
            content, status = clicked.content, MessageStatus.COMPLETE
        return self._create_variant(clicked, content=content, status=status, model=model)

    def edit(self, message_id: str, new_content: str) -> MessageRecord:
        """Create a variant of a user message carrying ``new_content``.

        Returns the clicked message untouched when the content does not change.

        Raises:
            InvalidOperationError: The message is not a user message.
        """
        clicked = self._store.get(message_id)
        if clicked.role is not Role.USER:
            raise InvalidOperationError(f"Only user messages can be edited; {message_id} is {clicked.role}")
        if clicked.content.strip() == new_content.strip():
            logger.info("edit_unchanged", message_id=message_id)
            return clicked
        return self._create_variant(clicked, content=new_content, status=MessageStatus.COMPLETE, model=None)

    def append_message(
        self,
        thread_id: str,
        role: Role | str,
        content: str,
        *,
        parent_message_id: str | None = None,
        model: str | None = None,
        status: MessageStatus = MessageStatus.COMPLETE,
        created_at: datetime | None = None,
    ) -> MessageRecord:
        """Add a new root message to a thread.

        A reply to a message inside a conversation branch stays in that
        branch and shares its branch point.

        Raises:
            MessageNotFoundError: ``parent_message_id`` does not exist.
            InvalidOperationError: The parent belongs to another thread.
        """
        branch_id = MAIN_BRANCH
        branch_point = None
        if parent_message_id is not None:
            parent = self._store.get(parent_message_id)
            if parent.thread_id != thread_id:
                raise InvalidOperationError(
                    f"Parent {parent_message_id} belongs to thread {parent.thread_id}, not {thread_id}"
                )
            branch_id = parent.conversation_branch_id
            branch_point = parent.branch_point
        record = MessageRecord(
            thread_id=ThreadId(thread_id),
            role=role,
            content=content,
            parent_message_id=parent_message_id,
            conversation_branch_id=branch_id,
            branch_point=branch_point,
            model=model,
            status=status,
            created_at=created_at or utc_now(),
        )
        saved = self._store.insert_message(record)
        logger.debug(
            "message_appended",
            message_id=saved.message_id,
            thread_id=thread_id,
            conversation_branch_id=branch_id,
        )
        return saved

    def _create_variant(
        self,
        clicked: MessageRecord,
        *,
        content: str,
        status: MessageStatus,
        model: str | None,
    ) -> MessageRecord:
        root = resolve_root(
            self._store,
            clicked.id,
            start=clicked,
            max_hops=self._settings.max_resolve_hops,
        )
        # Fail fast on a full root; the limit is re-checked atomically on insert.
        self._sequencer.check_limit(root)

        assignment = assign_branch(
            clicked,
            root,
            self._fetch_ancestry(root),
            origins={root.id: root, clicked.id: clicked},
            max_hops=self._settings.max_resolve_hops,
        )

        def build(sequence: int) -> MessageRecord:
            return MessageRecord(
                thread_id=root.thread_id,
                content=content,
                role=root.role,
                parent_message_id=root.parent_message_id,
                variant_of_id=root.id,
                variant_sequence=sequence,
                branch_id=f"b{sequence}",
                conversation_branch_id=assignment.conversation_branch_id,
                branch_point=assignment.branch_point,
                model=model or clicked.model or root.model,
                status=status,
            )

        variant = self._sequencer.allocate(root, build)
        self._log_created(clicked, root, variant, assignment)
        return variant

    def _fetch_ancestry(self, root: MessageRecord) -> list[MessageRecord]:
        """Direct parent first, then a bounded backward scan of root's timeline."""
        ancestry: list[MessageRecord] = []
        if root.parent_message_id is not None:
            try:
                ancestry.append(self._store.get(root.parent_message_id))
            except MessageNotFoundError:
                logger.warning(
                    "parent_missing",
                    message_id=root.id,
                    parent_message_id=root.parent_message_id,
                )
        ancestry.extend(
            self._store.preceding_messages(
                root.thread_id,
                root.created_at,
                conversation_branch_id=root.conversation_branch_id,
                limit=self._settings.ancestry_scan_depth,
            )
        )
        return ancestry

    @staticmethod
    def _log_created(
        clicked: MessageRecord,
        root: MessageRecord,
        variant: MessageRecord,
        assignment: BranchAssignment,
    ) -> None:
        logger.info(
            "variant_created",
            clicked_id=clicked.id,
            root_id=root.id,
            variant_id=variant.id,
            variant_sequence=variant.variant_sequence,
            conversation_branch_id=assignment.conversation_branch_id,
            branch_point=assignment.branch_point,
            forked=assignment.forked,
        )


__all__ = ["RetryCoordinator"]
