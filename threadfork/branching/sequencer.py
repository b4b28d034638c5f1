from __future__ import annotations

from collections.abc import Callable

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from threadfork.errors import BranchLimitExceeded, ConstraintViolation, RetryExhaustedError
from threadfork.lib.log import get_logger
from threadfork.protocols import MessageStore
from threadfork.storage.store import MessageRecord
from threadfork.types import MAX_VARIANTS

logger = get_logger(__name__)

INSERT_ATTEMPTS = 5


class VariantSequencer:
    """Allocates gapless variant sequences and enforces the per-root ceiling.

    The count is never trusted across a suspension point: every allocation
    attempt re-counts and hands the count to ``insert_variant_atomic``,
    which refuses the insert if another writer got there first. Collisions
    are retried up to ``attempts`` times.
    """

    def __init__(
        self,
        store: MessageStore,
        *,
        max_variants: int = MAX_VARIANTS,
        attempts: int = INSERT_ATTEMPTS,
        jitter: float = 0.01,
    ) -> None:
        if not 1 <= max_variants <= MAX_VARIANTS:
            raise ValueError(f"max_variants must be between 1 and {MAX_VARIANTS}, got {max_variants}")
        self._store = store
        self.max_variants = max_variants
        self.attempts = attempts
        self.jitter = jitter

    def count(self, root: MessageRecord) -> int:
        return len(self._store.query_by_variant_of(root.id))

    def check_limit(self, root: MessageRecord) -> int:
        """Return the current variant count, or raise if no slot is left."""
        count = self.count(root)
        if count >= self.max_variants:
            raise BranchLimitExceeded(root.id, self.max_variants)
        return count

    def next_sequence(self, root: MessageRecord) -> int:
        return self.check_limit(root) + 1

    def allocate(self, root: MessageRecord, build: Callable[[int], MessageRecord]) -> MessageRecord:
        """Build and persist the next variant of ``root``.

        Args:
            root: Resolved root message.
            build: Creates the unsaved variant for a given sequence number.

        Raises:
            BranchLimitExceeded: The root has no free variant slot.
            RetryExhaustedError: Every attempt lost the sequence race.
        """
        retryer = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_random(0, self.jitter),
            retry=retry_if_exception_type(ConstraintViolation),
            before_sleep=self._log_collision,
        )
        try:
            return retryer(self._attempt, root, build)
        except RetryError as exc:
            logger.error("variant_allocation_exhausted", root_id=root.id, attempts=self.attempts)
            raise RetryExhaustedError(root.id, self.attempts) from exc.last_attempt.exception()

    def _attempt(self, root: MessageRecord, build: Callable[[int], MessageRecord]) -> MessageRecord:
        count = self.check_limit(root)
        return self._store.insert_variant_atomic(build(count + 1), expected_count=count)

    @staticmethod
    def _log_collision(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "variant_sequence_collision",
            attempt=state.attempt_number,
            root_id=getattr(exc, "root_id", None),
            expected=getattr(exc, "expected_count", None),
        )


__all__ = ["INSERT_ATTEMPTS", "MAX_VARIANTS", "VariantSequencer"]
