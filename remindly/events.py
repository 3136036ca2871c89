"""In-process async event bus.

Services publish SystemEvents; handlers registered at startup (the audit
logger) receive them from a background worker task, so a slow handler never
delays the request that emitted the event.

Usage:
    from remindly.events import emit

    await emit(SystemEvent(
        event_type=EventType.APPOINTMENT_CREATED,
        appointment_id=appointment.id,
        source_module="appointments.service",
    ))

    # At startup:
    from remindly.events import subscribe

    subscribe(my_handler)                               # every event
    subscribe(my_alert, [EventType.SYNC_WRITE_FAILED])  # only these types
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from remindly.schemas.events import EventType, SystemEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[SystemEvent], Coroutine[Any, Any, None]]


class EventBus:
    """Queue + single worker task fanning each event out to its handlers.

    The queue and worker are created lazily on the running loop, so the bus
    can be used before ``start()`` (events emitted early are not lost).
    """

    def __init__(self) -> None:
        self._global: list[EventHandler] = []
        self._by_type: dict[EventType, list[EventHandler]] = {}
        self._queue: asyncio.Queue[SystemEvent] | None = None
        self._worker: asyncio.Task[None] | None = None

    # ── Subscriptions ────────────────────────────────────────────────

    def subscribe(self, handler: EventHandler, event_types: list[EventType] | None = None) -> None:
        if event_types is None:
            self._global.append(handler)
            logger.info("Subscribed %s to all events", handler.__name__)
            return
        for event_type in event_types:
            self._by_type.setdefault(event_type, []).append(handler)
        logger.info("Subscribed %s to %s", handler.__name__, [t.value for t in event_types])

    def unsubscribe(self, handler: EventHandler) -> None:
        if handler in self._global:
            self._global.remove(handler)
        for handlers in self._by_type.values():
            if handler in handlers:
                handlers.remove(handler)

    def handlers_for(self, event_type: EventType) -> list[EventHandler]:
        return [*self._global, *self._by_type.get(event_type, [])]

    @property
    def subscriber_count(self) -> int:
        return len(self._global) + sum(len(h) for h in self._by_type.values())

    # ── Publishing ───────────────────────────────────────────────────

    async def emit(self, event: SystemEvent) -> None:
        queue = self._ensure_running()
        await queue.put(event)
        logger.debug("Event queued: %s (appointment=%s)", event.event_type.value, event.appointment_id)

    async def drain(self) -> None:
        """Wait until every queued event has been delivered."""
        if self._queue is not None and self._worker is not None and not self._worker.done():
            await self._queue.join()

    # ── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        self._ensure_running()

    async def stop(self) -> None:
        await self.drain()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._queue = None

    def _ensure_running(self) -> asyncio.Queue[SystemEvent]:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(self._queue), name="remindly-event-worker")
            logger.info("Event worker started")
        return self._queue

    async def _run(self, queue: asyncio.Queue[SystemEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                await self._deliver(event)
            except Exception:
                logger.exception("Event worker failed on %s", event.event_type.value)
            finally:
                queue.task_done()

    async def _deliver(self, event: SystemEvent) -> None:
        handlers = self.handlers_for(event.event_type)
        if not handlers:
            return

        # Handlers run concurrently; one failing never hides the others
        results = await asyncio.gather(*(handler(event) for handler in handlers), return_exceptions=True)
        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error("Event handler %s failed for %s: %s", handler.__name__, event.event_type.value, result)


# Process-wide bus; the functions below are the public API.
bus = EventBus()


def subscribe(handler: EventHandler, event_types: list[EventType] | None = None) -> None:
    """Register ``handler`` for ``event_types``, or for every event when None."""
    bus.subscribe(handler, event_types)


def unsubscribe(handler: EventHandler) -> None:
    bus.unsubscribe(handler)


async def emit(event: SystemEvent) -> None:
    """Queue ``event`` for delivery. Never blocks on handlers."""
    await bus.emit(event)


async def start_event_system() -> None:
    """Call during FastAPI lifespan startup."""
    bus.start()
    logger.info("Event system started with %d subscriptions", bus.subscriber_count)


async def stop_event_system() -> None:
    """Deliver pending events, then stop the worker. Call during lifespan shutdown."""
    await bus.stop()
    logger.info("Event system stopped")
