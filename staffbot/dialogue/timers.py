"""Per-key countdown timers with cancel-and-replace semantics.

At most one live timer exists per key. Scheduling a key that already has
a timer cancels the old one first, so a stale countdown can never fire
after the key was legitimately re-armed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Hashable

logger = logging.getLogger(__name__)


class TimerRegistry:
    """Owns asyncio timer handles keyed by an arbitrary hashable key.

    Timers run on the event loop that is current when ``schedule`` is
    called; callbacks are plain synchronous callables.
    """

    def __init__(self, name: str = "timers") -> None:
        self._name = name
        self._timers: dict[Hashable, asyncio.TimerHandle] = {}

    def schedule(self, key: Hashable, delay: float, on_fire: Callable[[], None]) -> None:
        """Start a countdown for *key*, replacing any existing one.

        *on_fire* runs exactly once when the delay elapses, after the
        timer has been forgotten.
        """
        existing = self._timers.pop(key, None)
        if existing is not None:
            existing.cancel()

        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(delay, self._fire, key, on_fire)

    def cancel(self, key: Hashable) -> bool:
        """Cancel and forget the timer for *key*. Returns False if there was none."""
        handle = self._timers.pop(key, None)
        if handle is None:
            logger.debug("[%s] no timer to cancel for key %s", self._name, key)
            return False
        handle.cancel()
        return True

    def remaining(self, key: Hashable) -> float | None:
        """Seconds until the timer for *key* fires, or None if there is no timer."""
        handle = self._timers.get(key)
        if handle is None:
            return None
        return max(handle.when() - asyncio.get_running_loop().time(), 0.0)

    def cancel_all(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def _fire(self, key: Hashable, on_fire: Callable[[], None]) -> None:
        self._timers.pop(key, None)
        try:
            on_fire()
        except Exception:
            logger.exception("[%s] timer callback failed for key %s", self._name, key)
