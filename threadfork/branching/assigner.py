from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from uuid import uuid4

from threadfork.branching.resolver import DEFAULT_MAX_HOPS
from threadfork.lib.roles import Role
from threadfork.storage.store import MessageRecord
from threadfork.types import ConversationBranchId, MessageId


@dataclass(frozen=True)
class BranchAssignment:
    conversation_branch_id: ConversationBranchId
    branch_point: MessageId
    forked: bool  # True when a new conversation branch was minted


def mint_branch_id() -> ConversationBranchId:
    """Fresh conversation branch id. Opaque: nothing parses it."""
    return ConversationBranchId(f"branch_{uuid4().hex}")


def nearest_user_message(anchor: MessageRecord, ancestry: Sequence[MessageRecord]) -> MessageId:
    """First user-authored message in ``ancestry`` (newest first), else the anchor itself."""
    for candidate in ancestry:
        if candidate.message_id == anchor.message_id:
            continue
        if candidate.role is Role.USER:
            return candidate.id
    return anchor.id


def _inherited_branch_point(
    clicked: MessageRecord,
    root: MessageRecord,
    ancestry: Sequence[MessageRecord],
    origins: Mapping[str, MessageRecord],
    max_hops: int,
) -> MessageId:
    # Walk back along variant_of until the message the fork left the main
    # timeline from; its branch point is the branch point of the whole fork.
    current = clicked
    for _ in range(max_hops):
        if current.is_main:
            return nearest_user_message(current, ancestry)
        origin_id = current.variant_of_id
        if origin_id is None or origin_id not in origins:
            break
        current = origins[origin_id]
    return current.branch_point or clicked.branch_point or root.id


def assign_branch(
    clicked: MessageRecord,
    root: MessageRecord,
    ancestry: Sequence[MessageRecord],
    *,
    origins: Mapping[str, MessageRecord] | None = None,
    max_hops: int = DEFAULT_MAX_HOPS,
) -> BranchAssignment:
    """Decide which conversation branch a new variant of ``root`` belongs to.

    Retrying from the main timeline forks a new branch anchored at the
    nearest user message before ``root``. Retrying from inside a branch
    stays in that branch and keeps its original branch point.

    Args:
        clicked: The message the user retried.
        root: ``clicked``'s resolved root.
        ancestry: Messages preceding ``root`` on its timeline, newest first
            (the direct parent, when known, should come first).
        origins: Already-loaded records reachable through ``variant_of_id``;
            ``root`` is always included.
        max_hops: Cap on the backward walk.
    """
    known = dict(origins or {})
    known.setdefault(root.id, root)

    if clicked.is_main:
        return BranchAssignment(
            conversation_branch_id=mint_branch_id(),
            branch_point=nearest_user_message(root, ancestry),
            forked=True,
        )

    return BranchAssignment(
        conversation_branch_id=clicked.conversation_branch_id,
        branch_point=_inherited_branch_point(clicked, root, ancestry, known, max_hops),
        forked=False,
    )


__all__ = ["BranchAssignment", "assign_branch", "mint_branch_id", "nearest_user_message"]
