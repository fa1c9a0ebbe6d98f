"""In-process event bus for dialogue milestones.

Handlers never run inside the emitting dialogue step: ``emit`` only
enqueues, and a single worker task fans each event out to every
subscriber. The app owns one bus; the module-level ``emit``,
``subscribe``, ``start_event_system`` and ``stop_event_system`` are
bound to it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from staffbot.schemas.events import SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]


class EventBus:
    """FIFO queue drained by one worker; every handler sees every event."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []
        self._queue: asyncio.Queue[SystemEvent] | None = None
        self._worker: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)
        logger.info("Event subscriber registered: %s", getattr(handler, "__name__", repr(handler)))

    async def emit(self, event: SystemEvent) -> None:
        if not self.running:
            await self.start()
        await self._queue.put(event)  # type: ignore[union-attr]
        logger.debug("[event] %s queued (actor=%s)", event.event_type.value, event.actor_id)

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._drain(self._queue))
        logger.info("Event bus started with %d subscriber(s)", len(self._handlers))

    async def stop(self) -> None:
        """Deliver everything already queued, then stop the worker."""
        if self._queue is not None and self.running:
            await self._queue.join()
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
        self._worker = None
        self._queue = None
        logger.info("Event bus stopped")

    async def _drain(self, queue: asyncio.Queue[SystemEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                await self.deliver(event)
            finally:
                queue.task_done()

    async def deliver(self, event: SystemEvent) -> None:
        """Run every handler on *event*; one handler failing never stops the others."""
        handlers = list(self._handlers)
        results = await asyncio.gather(*(handler(event) for handler in handlers), return_exceptions=True)
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(
                    "Subscriber %s failed on %s: %r",
                    getattr(handler, "__name__", repr(handler)),
                    event.event_type.value,
                    result,
                )


bus = EventBus()

emit = bus.emit
subscribe = bus.subscribe
start_event_system = bus.start
stop_event_system = bus.stop
