"""
Event sinks for pushing processed-screenshot events to the UI layer.

Sinks are injected into the components that emit events. ``notify`` must
return immediately and must not raise into the caller.
"""
import asyncio
import logging
from typing import Protocol, Set

from screenshot_analyzer.models.dtos import ScreenshotEvent

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def notify(self, event: ScreenshotEvent) -> None:
        ...


class NullEventSink:
    """Discards every event."""

    def notify(self, event: ScreenshotEvent) -> None:
        return None


class LoggingEventSink:
    """Logs events; useful when no UI is attached."""

    def notify(self, event: ScreenshotEvent) -> None:
        logger.info(f"Event {event.event}: {event.name} ({event.id})")


class BroadcastEventSink:
    """
    Fans events out to subscriber queues.

    Each subscriber gets its own bounded queue. A subscriber that falls behind
    loses events instead of slowing down the publisher.
    """

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.add(queue)
        logger.debug(f"Event subscriber added, now {len(self._subscribers)}")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        logger.debug(f"Event subscriber removed, now {len(self._subscribers)}")

    def notify(self, event: ScreenshotEvent) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Event subscriber queue full, dropping event {event.id}")
