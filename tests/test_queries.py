from __future__ import annotations

import pytest

from threadfork.branching import (
    list_branch_messages,
    list_branches,
    list_variants,
    summarize_branches,
    variant_position,
)
from threadfork.errors import MessageNotFoundError


def test_list_variants_is_root_then_sequence_order(coordinator, threads, store) -> None:
    _, answer = threads.exchange()
    made = [coordinator.retry(answer.id) for _ in range(3)]

    forms = list_variants(store, answer.id)

    assert [m.id for m in forms] == [answer.id, *(v.id for v in made)]
    assert [m.variant_sequence for m in forms[1:]] == [1, 2, 3]


def test_list_variants_accepts_variant_id(coordinator, threads, store) -> None:
    _, answer = threads.exchange()
    variant = coordinator.retry(answer.id)

    assert list_variants(store, variant.id) == list_variants(store, answer.id)


def test_list_variants_is_idempotent(coordinator, threads, store) -> None:
    _, answer = threads.exchange()
    for _ in range(4):
        coordinator.retry(answer.id)

    assert list_variants(store, answer.id) == list_variants(store, answer.id)


def test_list_variants_of_root_without_variants(threads, store) -> None:
    _, answer = threads.exchange()
    assert [m.id for m in list_variants(store, answer.id)] == [answer.id]


def test_list_variants_unknown_root(store) -> None:
    with pytest.raises(MessageNotFoundError):
        list_variants(store, "nope")


def test_list_branch_messages_follows_fork(coordinator, threads, store) -> None:
    question, answer = threads.exchange()
    variant = coordinator.retry(answer.id)
    follow_up = threads.message(answer.thread_id, "user", "go on", parent=variant)

    branch = list_branch_messages(store, variant.conversation_branch_id)
    main = list_branch_messages(store, "main", thread_id=answer.thread_id)

    assert {m.id for m in branch} == {variant.id, follow_up.id}
    assert [m.id for m in main] == [question.id, answer.id]
    assert list_branch_messages(store, "branch_unknown") == []


def test_list_branches_includes_main(coordinator, threads, store) -> None:
    _, answer = threads.exchange(thread_id="t1")
    first = coordinator.retry(answer.id)
    second = coordinator.retry(answer.id)

    assert list_branches(store, "t1") == {
        "main",
        first.conversation_branch_id,
        second.conversation_branch_id,
    }
    assert list_branches(store, "empty-thread") == set()


def test_summarize_branches_puts_main_first(coordinator, threads, store) -> None:
    question, answer = threads.exchange(thread_id="t1")
    variant = coordinator.retry(answer.id)
    coordinator.retry(variant.id)

    summaries = summarize_branches(store, "t1")

    assert [s.conversation_branch_id for s in summaries] == ["main", variant.conversation_branch_id]
    main, fork = summaries
    assert main.message_count == 2
    assert main.branch_point is None
    assert fork.message_count == 2
    assert fork.branch_point == question.id
    assert fork.first_created_at <= fork.last_created_at


def test_variant_position(coordinator, threads, store) -> None:
    _, answer = threads.exchange()
    first = coordinator.retry(answer.id)
    second = coordinator.retry(answer.id)

    assert variant_position(store, answer.id).label() == "1/3"
    assert variant_position(store, first.id).label() == "2/3"
    position = variant_position(store, second.id)
    assert (position.root_id, position.index, position.total) == (answer.id, 3, 3)
