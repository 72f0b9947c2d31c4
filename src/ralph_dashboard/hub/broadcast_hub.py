"""Broadcast hub fanning producer events out to connected observers.

Provides:
- Bounded per-observer queues (drop oldest when full)
- Retained snapshots of loop status, checklist, repository and project
  configuration, replayed to each new observer before any other event
- Failure isolation: a failing observer is removed without affecting others

The hub is owned by the event loop thread. publish() never awaits, so the
subscriber set cannot change while an event is being fanned out.
"""

import asyncio
import logging
from typing import Any

from ralph_dashboard.manager.run_state import ProcessRunState
from ralph_dashboard.watchers.checklist import ChecklistSnapshot
from ralph_dashboard.watchers.git_status import RepositoryStatus

from .events import CONFIG_UPDATE, GIT_UPDATE, LOOP_STATUS, TASKS_UPDATE, DashboardEvent

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUEUE_SIZE = 1000

# Replay order on subscribe
SNAPSHOT_TYPES = (LOOP_STATUS, TASKS_UPDATE, GIT_UPDATE, CONFIG_UPDATE)


class SubscriberClosedError(Exception):
    """Delivery attempted to a closed subscriber."""


class Subscriber:
    """Outbound channel of one observer.

    Messages are queued until the observer's writer task sends them. A None
    message marks the end of the stream.

    Attributes:
        max_queue_size: Queue bound; the oldest message is dropped when full.
        dropped: Messages discarded by backpressure.

    """

    def __init__(self, max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE) -> None:
        self.max_queue_size = max_queue_size
        self.dropped = 0
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, message: dict[str, Any]) -> None:
        """Queue a message without blocking.

        Raises:
            SubscriberClosedError: If the subscriber was closed.

        """
        if self._closed:
            raise SubscriberClosedError("subscriber closed")
        self._put(message)

    def _put(self, message: dict[str, Any] | None) -> None:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            try:
                self._queue.get_nowait()
                self.dropped += 1
            except asyncio.QueueEmpty:
                pass
            self._queue.put_nowait(message)

    async def receive(self) -> dict[str, Any] | None:
        """Next queued message, or None once closed and drained."""
        return await self._queue.get()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._put(None)


class BroadcastHub:
    """Single source of truth for observers.

    Attributes:
        max_queue_size: Queue bound for new subscribers.

    """

    def __init__(self, max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE) -> None:
        self.max_queue_size = max_queue_size
        self._subscribers: set[Subscriber] = set()
        self._snapshots: dict[str, Any] = {
            LOOP_STATUS: ProcessRunState().to_payload(),
            TASKS_UPDATE: ChecklistSnapshot().to_payload(),
            GIT_UPDATE: RepositoryStatus().to_payload(),
            CONFIG_UPDATE: {},
        }

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def snapshot(self, event_type: str) -> Any:
        """Latest retained payload of a snapshot category."""
        return self._snapshots[event_type]

    def subscribe(self, subscriber: Subscriber | None = None) -> Subscriber:
        """Register an observer and queue the current snapshots for it only."""
        if subscriber is None:
            subscriber = Subscriber(self.max_queue_size)

        for event_type in SNAPSHOT_TYPES:
            subscriber.deliver(DashboardEvent(event_type, self._snapshots[event_type]).to_message())

        self._subscribers.add(subscriber)
        logger.info("Observer connected (total: %d)", len(self._subscribers))
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info("Observer disconnected (remaining: %d)", len(self._subscribers))
        subscriber.close()

    def publish(self, event: DashboardEvent) -> int:
        """Retain snapshot events and fan the event out to every observer.

        Returns:
            Number of observers the event was queued for.

        """
        if event.type in self._snapshots:
            self._snapshots[event.type] = event.payload

        message = event.to_message()
        sent = 0
        for subscriber in list(self._subscribers):
            try:
                subscriber.deliver(message)
                sent += 1
            except Exception as e:
                logger.warning("Dropping observer after delivery failure: %s", e)
                self.unsubscribe(subscriber)
        return sent

    def unicast(self, subscriber: Subscriber, event: DashboardEvent) -> bool:
        """Send an event to one observer without touching snapshots."""
        try:
            subscriber.deliver(event.to_message())
        except Exception as e:
            logger.warning("Dropping observer after delivery failure: %s", e)
            self.unsubscribe(subscriber)
            return False
        return True

    def close(self) -> None:
        """Close every observer channel."""
        for subscriber in list(self._subscribers):
            self.unsubscribe(subscriber)
