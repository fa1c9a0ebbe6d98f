"""Keyed in-memory session table with timer-driven expiry.

One record per key. Every successful ``update`` re-arms the expiry
timer to the full timeout, so only genuine inactivity expires a
session. ``update`` never creates a record: a session that has been
deleted (by a handler, a cancel or its timer) stays deleted.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Callable, Hashable
from typing import Any, Generic, TypeVar

from staffbot.dialogue.timers import TimerRegistry

logger = logging.getLogger(__name__)

S = TypeVar("S")

# Fields never written to the log verbatim
_MASKED_FIELDS = frozenset({"code"})


class SessionStore(Generic[S]):
    """Session table for one dialogue type.

    Args:
        name: Label used in log lines.
        factory: Record constructor; called with ``created_at`` plus the
            initial fields passed to ``create``.
        timeout: Inactivity timeout in seconds.
        timers: Registry owning the expiry timers (one per key).
        clock: Wall-clock source for ``created_at`` and the age sweep.
    """

    def __init__(
        self,
        name: str,
        factory: Callable[..., S],
        timeout: float,
        timers: TimerRegistry | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self._factory = factory
        self._timeout = timeout
        self._timers = timers or TimerRegistry(name)
        self._clock = clock
        self._sessions: dict[Hashable, S] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def timers(self) -> TimerRegistry:
        return self._timers

    def create(self, key: Hashable, **fields: Any) -> None:
        """Start a fresh session for *key*, tearing down any existing one first."""
        self.delete(key)
        self._sessions[key] = self._factory(created_at=self._clock(), **fields)
        self._arm(key)
        logger.debug("[session_created] %s key=%s", self.name, key)

    def get(self, key: Hashable) -> S | None:
        """Return a copy of the session for *key*, or None."""
        session = self._sessions.get(key)
        return dataclasses.replace(session) if session is not None else None

    def update(self, key: Hashable, **fields: Any) -> bool:
        """Merge *fields* into the session for *key* and re-arm its expiry.

        Returns False (and logs a warning) when the session does not exist.
        """
        current = self._sessions.get(key)
        if current is None:
            logger.warning("[session_not_found] %s key=%s, update ignored", self.name, key)
            return False

        self._sessions[key] = dataclasses.replace(current, **fields)
        self._arm(key)
        logger.debug("[session_updated] %s key=%s changes=%s", self.name, key, _loggable(fields))
        return True

    def delete(self, key: Hashable) -> bool:
        """Cancel the timer and drop the session. Safe when absent."""
        if key in self._timers:
            self._timers.cancel(key)
        if self._sessions.pop(key, None) is None:
            return False
        logger.debug("[session_deleted] %s key=%s", self.name, key)
        return True

    def cleanup_expired_sessions(self, max_age: float) -> int:
        """Drop every session created more than *max_age* seconds ago."""
        now = self._clock()
        expired = [key for key, s in self._sessions.items() if now - s.created_at > max_age]
        for key in expired:
            self.delete(key)
            logger.info("[session_expired] %s key=%s removed by age sweep", self.name, key)
        return len(expired)

    def clear(self) -> None:
        self._timers.cancel_all()
        self._sessions.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def _arm(self, key: Hashable) -> None:
        self._timers.schedule(key, self._timeout, lambda: self._expire(key))

    def _expire(self, key: Hashable) -> None:
        # The registry has already forgotten this timer
        if self._sessions.pop(key, None) is not None:
            logger.info("[session_timeout] %s key=%s removed after %.0fs idle", self.name, key, self._timeout)


def _loggable(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: ("****" if k in _MASKED_FIELDS and v is not None else v) for k, v in fields.items()}
