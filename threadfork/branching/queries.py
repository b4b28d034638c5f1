"""Read-only views over variants and conversation branches.

Everything here is a pure read: calling any function twice with no writes
in between returns equal results in the same order.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from threadfork.branching.resolver import DEFAULT_MAX_HOPS, resolve_root
from threadfork.errors import DataIntegrityError
from threadfork.protocols import MessageStore
from threadfork.storage.store import MessageRecord
from threadfork.types import MAIN_BRANCH, ConversationBranchId, MessageId


@dataclass(frozen=True)
class VariantPosition:
    """Position of a message among its root's forms; the root is index 1."""

    root_id: MessageId
    index: int
    total: int

    def label(self) -> str:
        return f"{self.index}/{self.total}"


@dataclass(frozen=True)
class BranchSummary:
    conversation_branch_id: ConversationBranchId
    branch_point: MessageId | None
    message_count: int
    first_created_at: datetime
    last_created_at: datetime


def _chronological_key(message: MessageRecord) -> tuple[datetime, str]:
    return (message.created_at, message.id)


def list_variants(
    store: MessageStore, root_id: str, *, max_hops: int = DEFAULT_MAX_HOPS
) -> list[MessageRecord]:
    """The root followed by its variants in ascending sequence.

    A variant id is accepted too and resolved to its root first.
    """
    root = resolve_root(store, root_id, max_hops=max_hops)
    variants = sorted(
        store.query_by_variant_of(root.id),
        key=lambda m: (m.variant_sequence or 0, m.id),
    )
    return [root, *variants]


def list_branch_messages(
    store: MessageStore, conversation_branch_id: str, *, thread_id: str | None = None
) -> list[MessageRecord]:
    """Messages on one conversation branch, oldest first, ties broken by id."""
    return sorted(store.query_by_branch(conversation_branch_id, thread_id), key=_chronological_key)


def list_branches(store: MessageStore, thread_id: str) -> set[ConversationBranchId]:
    """Distinct conversation branch ids in a thread; includes "main" when the thread has messages."""
    messages = store.query_thread(thread_id)
    branches = {m.conversation_branch_id for m in messages}
    if messages:
        branches.add(MAIN_BRANCH)
    return branches


def summarize_branches(store: MessageStore, thread_id: str) -> list[BranchSummary]:
    """Per-branch statistics; "main" first, then branches by first appearance."""
    groups: dict[ConversationBranchId, list[MessageRecord]] = {}
    for message in sorted(store.query_thread(thread_id), key=_chronological_key):
        groups.setdefault(message.conversation_branch_id, []).append(message)

    summaries = []
    for branch_id, members in groups.items():
        branch_point = next((m.branch_point for m in members if m.branch_point is not None), None)
        summaries.append(
            BranchSummary(
                conversation_branch_id=branch_id,
                branch_point=branch_point,
                message_count=len(members),
                first_created_at=members[0].created_at,
                last_created_at=members[-1].created_at,
            )
        )
    summaries.sort(key=lambda s: (s.conversation_branch_id != MAIN_BRANCH, s.first_created_at))
    return summaries


def variant_position(
    store: MessageStore, message_id: str, *, max_hops: int = DEFAULT_MAX_HOPS
) -> VariantPosition:
    """Where ``message_id`` sits among its root's forms."""
    forms = list_variants(store, message_id, max_hops=max_hops)
    index = next((i for i, m in enumerate(forms, start=1) if m.id == message_id), None)
    if index is None:
        raise DataIntegrityError(f"Message {message_id} is not a direct variant of its root {forms[0].id}")
    return VariantPosition(root_id=forms[0].id, index=index, total=len(forms))


__all__ = [
    "BranchSummary",
    "VariantPosition",
    "list_branch_messages",
    "list_branches",
    "list_variants",
    "summarize_branches",
    "variant_position",
]
