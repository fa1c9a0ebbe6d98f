"""Suppression of duplicate event delivery.

The transport delivers at least once. For events whose side effect must
not repeat (a "bot added to chat" greeting), the deduplicator remembers
an event-derived key for a time window and reports repeats.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable

from staffbot.dialogue.events import InboundEvent

logger = logging.getLogger(__name__)


class EventDeduplicator:
    """Time-bounded seen-set, oldest entries evicted first."""

    def __init__(
        self,
        window: float,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window
        self._max_entries = max_entries
        self._clock = clock
        self._seen: OrderedDict[str, float] = OrderedDict()

    @staticmethod
    def key_for(event: InboundEvent) -> str | None:
        """Dedup key: event kind, chat and user. None if the event has no chat."""
        if event.chat_id is None:
            return None
        return f"{event.kind.value}:{event.chat_id}:{event.user_id}"

    def is_duplicate(self, key: str) -> bool:
        """Record *key* and report whether it was already seen inside the window."""
        now = self._clock()
        self._evict(now)

        if key in self._seen:
            logger.debug("[dedup] duplicate event suppressed: %s", key)
            return True

        self._seen[key] = now
        while len(self._seen) > self._max_entries:
            self._seen.popitem(last=False)
        return False

    def __len__(self) -> int:
        return len(self._seen)

    def _evict(self, now: float) -> None:
        while self._seen:
            oldest_key, seen_at = next(iter(self._seen.items()))
            if now - seen_at < self._window:
                break
            del self._seen[oldest_key]
