"""In-process event fan-out to connected observers.

Each subscriber owns a bounded queue. ``publish`` never blocks: an observer
whose queue is full (or that has been closed) is dropped instead of stalling
the ingestion path.

Usage:
    broadcaster = EventBroadcaster(max_queue=1000)
    sub = broadcaster.subscribe()
    broadcaster.publish(EventKind.VESSEL_ADDED, {"vessel": {...}})
    event = sub.get(timeout=1.0)
"""
from __future__ import annotations

import itertools
import logging
import queue
import threading
from typing import Any, Optional

from fleetwatch.errors import DownstreamDeliveryError
from fleetwatch.schemas.events import BroadcastEvent, EventKind

logger = logging.getLogger(__name__)


class Subscription:
    """One observer's view of the event stream. Delivery is in publish order."""

    def __init__(self, subscriber_id: int, max_queue: int):
        self.subscriber_id = subscriber_id
        self._queue: queue.Queue[BroadcastEvent] = queue.Queue(maxsize=max_queue)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def deliver(self, event: BroadcastEvent) -> None:
        if self.closed:
            raise DownstreamDeliveryError(f"subscriber {self.subscriber_id} is closed")
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            raise DownstreamDeliveryError(
                f"subscriber {self.subscriber_id} queue full ({self._queue.maxsize})"
            )

    def get(self, timeout: Optional[float] = None) -> Optional[BroadcastEvent]:
        """Next event, or None when the timeout elapses or the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._closed.set()


class EventBroadcaster:
    def __init__(self, max_queue: int = 1000):
        self._max_queue = max_queue
        self._lock = threading.Lock()
        self._subscribers: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def subscribe(self) -> Subscription:
        with self._lock:
            sub = Subscription(next(self._ids), self._max_queue)
            self._subscribers[sub.subscriber_id] = sub
        logger.debug("Observer %d subscribed", sub.subscriber_id)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        sub.close()
        with self._lock:
            self._subscribers.pop(sub.subscriber_id, None)

    def publish(self, kind: EventKind, payload: dict[str, Any]) -> BroadcastEvent:
        event = BroadcastEvent(kind=kind, payload=payload)
        with self._lock:
            targets = list(self._subscribers.values())
        for sub in targets:
            try:
                sub.deliver(event)
            except DownstreamDeliveryError as exc:
                logger.warning("Dropping observer: %s", exc)
                self.unsubscribe(sub)
        return event

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)
