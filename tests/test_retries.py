"""Variant sequencing, the per-root ceiling, and collision retries."""

from __future__ import annotations

import pytest

from threadfork.branching.sequencer import VariantSequencer
from threadfork.errors import BranchLimitExceeded, ConstraintViolation, RetryExhaustedError
from threadfork.storage.store import MessageRecord


def _builder(root: MessageRecord):
    def build(sequence: int) -> MessageRecord:
        return MessageRecord(
            thread_id=root.thread_id,
            role=root.role,
            variant_of_id=root.id,
            variant_sequence=sequence,
            branch_id=f"b{sequence}",
            conversation_branch_id="branch_test",
        )

    return build


class RacingStore:
    """Wraps a store and lets a competitor insert right before our insert."""

    def __init__(self, inner, races: int) -> None:
        self.inner = inner
        self.races = races
        self.attempts = 0

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def insert_variant_atomic(self, record: MessageRecord, expected_count: int) -> MessageRecord:
        self.attempts += 1
        if self.races > 0:
            self.races -= 1
            competitor = record.model_copy(update={"message_id": None})
            self.inner.insert_variant_atomic(competitor, expected_count)
        return self.inner.insert_variant_atomic(record, expected_count)


@pytest.fixture
def root(threads):
    _, answer = threads.exchange()
    return answer


def test_next_sequence_counts_existing_variants(store, root) -> None:
    sequencer = VariantSequencer(store)
    assert sequencer.next_sequence(root) == 1

    sequencer.allocate(root, _builder(root))
    sequencer.allocate(root, _builder(root))
    assert sequencer.next_sequence(root) == 3
    assert sequencer.count(root) == 2


def test_ninth_variant_succeeds_and_tenth_fails(store, root) -> None:
    sequencer = VariantSequencer(store)
    for _ in range(8):
        sequencer.allocate(root, _builder(root))

    ninth = sequencer.allocate(root, _builder(root))
    assert ninth.variant_sequence == 9

    with pytest.raises(BranchLimitExceeded) as excinfo:
        sequencer.allocate(root, _builder(root))
    assert excinfo.value.root_id == root.id
    assert "10" in str(excinfo.value)
    assert sequencer.count(root) == 9


def test_check_limit_honours_custom_ceiling(store, root) -> None:
    sequencer = VariantSequencer(store, max_variants=2)
    sequencer.allocate(root, _builder(root))
    sequencer.allocate(root, _builder(root))
    with pytest.raises(BranchLimitExceeded):
        sequencer.check_limit(root)


def test_collision_is_recomputed(store, root) -> None:
    racing = RacingStore(store, races=1)
    sequencer = VariantSequencer(racing, jitter=0)

    variant = sequencer.allocate(root, _builder(root))

    assert racing.attempts == 2
    assert variant.variant_sequence == 2
    sequences = [v.variant_sequence for v in store.query_by_variant_of(root.id)]
    assert sequences == [1, 2]


def test_collision_budget_exhaustion_is_transient_error(store, root) -> None:
    racing = RacingStore(store, races=10)
    sequencer = VariantSequencer(racing, attempts=3, jitter=0)

    with pytest.raises(RetryExhaustedError) as excinfo:
        sequencer.allocate(root, _builder(root))

    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.__cause__, ConstraintViolation)
    assert racing.attempts == 3


def test_collision_into_full_root_reports_limit(store, root) -> None:
    sequencer = VariantSequencer(store, max_variants=1, jitter=0)
    racing = RacingStore(store, races=1)

    with pytest.raises(BranchLimitExceeded):
        VariantSequencer(racing, max_variants=1, jitter=0).allocate(root, _builder(root))
    assert sequencer.count(root) == 1


@pytest.mark.parametrize("ceiling", [0, 10, 15])
def test_sequencer_refuses_ceiling_outside_range(store, ceiling) -> None:
    with pytest.raises(ValueError):
        VariantSequencer(store, max_variants=ceiling)
