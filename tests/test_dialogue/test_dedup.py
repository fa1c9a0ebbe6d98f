"""Tests for duplicate event suppression."""

from __future__ import annotations

from staffbot.dialogue.dedup import EventDeduplicator
from staffbot.dialogue.events import EventKind, InboundEvent


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _bot_added(chat_id: int | None = -100500, user_id: int = 7) -> InboundEvent:
    return InboundEvent(kind=EventKind.BOT_ADDED, user_id=user_id, chat_id=chat_id)


class TestKeyFor:
    def test_key_combines_kind_chat_and_user(self):
        assert EventDeduplicator.key_for(_bot_added()) == "bot_added:-100500:7"

    def test_no_chat_no_key(self):
        assert EventDeduplicator.key_for(_bot_added(chat_id=None)) is None


class TestIsDuplicate:
    def test_repeat_inside_window_is_duplicate(self):
        clock = _Clock()
        dedup = EventDeduplicator(window=60, clock=clock)

        assert dedup.is_duplicate("k") is False
        clock.now = 59
        assert dedup.is_duplicate("k") is True

    def test_repeat_after_window_is_new(self):
        clock = _Clock()
        dedup = EventDeduplicator(window=60, clock=clock)

        dedup.is_duplicate("k")
        clock.now = 61

        assert dedup.is_duplicate("k") is False

    def test_distinct_keys_do_not_collide(self):
        dedup = EventDeduplicator(window=60, clock=_Clock())

        assert dedup.is_duplicate("a") is False
        assert dedup.is_duplicate("b") is False

    def test_size_bound_evicts_oldest(self):
        dedup = EventDeduplicator(window=60, max_entries=2, clock=_Clock())
        for key in ("a", "b", "c"):
            dedup.is_duplicate(key)

        assert len(dedup) == 2
        assert dedup.is_duplicate("a") is False  # evicted, seen as new
