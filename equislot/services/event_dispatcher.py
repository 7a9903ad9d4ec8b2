"""
In-process publish/subscribe for booking events.

Handlers are registered per event type and run in registration order. Each
handler is its own failure domain: an exception is logged and the next
handler still runs. ``dispatch`` therefore never raises.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Protocol, Set

from ..domain.events import BookingEvent, BookingEventType

logger = logging.getLogger(__name__)


class EventHandler(Protocol):
    async def handle(self, event: BookingEvent) -> None:
        """React to an event. May raise; the dispatcher contains it."""


class EventDispatcher:
    """Ordered, failure-isolated fan-out of events to handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[BookingEventType, List[EventHandler]] = defaultdict(list)
        self._pending: Set[asyncio.Task] = set()

    def register(self, event_type: BookingEventType, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: BookingEventType) -> List[EventHandler]:
        return list(self._handlers.get(event_type, []))

    async def dispatch(self, event: BookingEvent) -> None:
        """Run every handler registered for the event's type."""
        for handler in self.handlers_for(event.event_type):
            try:
                await handler.handle(event)
            except Exception:
                logger.exception(
                    "Event handler %s failed for %s",
                    type(handler).__name__,
                    event.event_type.value,
                    extra={"event_id": event.event_id},
                )

    def publish(self, event: BookingEvent) -> asyncio.Task:
        """
        Schedule ``dispatch`` without waiting for it.

        Must be called from a running event loop. The task is tracked until it
        finishes; ``drain`` waits for everything still in flight.
        """
        task = asyncio.get_running_loop().create_task(self.dispatch(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for all published events to finish dispatching."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
