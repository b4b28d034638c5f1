from __future__ import annotations

from threadfork.errors import DataIntegrityError, MessageNotFoundError
from threadfork.lib.log import get_logger
from threadfork.protocols import MessageStore
from threadfork.storage.store import MessageRecord

logger = get_logger(__name__)

DEFAULT_MAX_HOPS = 32


def resolve_root(
    store: MessageStore,
    message_id: str,
    *,
    start: MessageRecord | None = None,
    max_hops: int = DEFAULT_MAX_HOPS,
) -> MessageRecord:
    """Follow ``variant_of_id`` pointers until a message that is not a variant.

    A well-formed store needs at most one hop, but chains are followed
    iteratively so that stores holding variant-of-variant links still
    resolve to the ultimate root.

    Args:
        store: Message store to read from.
        message_id: Any message id.
        start: The already-loaded record for ``message_id``, if the caller has it.
        max_hops: Iteration cap; exceeding it means the data is corrupt.

    Raises:
        MessageNotFoundError: ``message_id`` is unknown, or a pointer dangles.
        DataIntegrityError: A cycle was found or the hop cap was exceeded.
    """
    current = start if start is not None else store.get(message_id)
    seen = {current.id}

    for hop in range(max_hops + 1):
        target = current.variant_of_id
        if target is None:
            return current
        if hop == max_hops:
            break
        if target in seen:
            raise DataIntegrityError(f"Variant chain starting at {message_id} loops back to {target}")
        try:
            parent = store.get(target)
        except MessageNotFoundError as exc:
            raise MessageNotFoundError(target, referenced_by=current.id) from exc
        logger.debug("resolve_root_hop", message_id=current.id, variant_of_id=target, hop=hop + 1)
        seen.add(parent.id)
        current = parent

    raise DataIntegrityError(f"Variant chain starting at {message_id} exceeds {max_hops} hops")


__all__ = ["DEFAULT_MAX_HOPS", "resolve_root"]
