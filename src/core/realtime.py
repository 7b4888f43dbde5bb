"""In-process realtime event feed.

Managers publish a row to a named collection after it has been committed.
Subscribers receive every inserted row of that collection that matches their
equality filters, through an asyncio queue owned by the subscription.
Publishing may happen from a worker thread (sync route handlers); delivery is
handed over to the subscriber's event loop.
"""

import asyncio
import logging
import threading
import uuid
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class Subscription:
    """A live subscription to insert events of one collection."""

    def __init__(
        self,
        feed: "EventFeed",
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
    ):
        self.subscription_id = uuid.uuid4().hex
        self.collection = collection
        self.filters = dict(filters or {})
        self.queue: asyncio.Queue = asyncio.Queue()
        self._feed = feed
        self._closed = False
        try:
            self._loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, row: Dict[str, Any]) -> bool:
        return all(row.get(key) == value for key, value in self.filters.items())

    def deliver(self, row: Dict[str, Any]) -> None:
        if self._closed:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if self._loop is not None and running is not self._loop:
            if self._loop.is_closed():
                logger.debug("Dropping event for subscription %s: loop closed", self.subscription_id)
                return
            self._loop.call_soon_threadsafe(self.queue.put_nowait, row)
        else:
            self.queue.put_nowait(row)

    async def get(self) -> Dict[str, Any]:
        """Wait for the next inserted row."""
        return await self.queue.get()

    def get_nowait(self) -> Optional[Dict[str, Any]]:
        """Return the next queued row, or None when the queue is empty."""
        try:
            return self.queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def close(self) -> None:
        """Stop receiving events and release the subscription."""
        if self._closed:
            return
        self._closed = True
        self._feed.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class EventFeed:
    """Fan-out of insert events per collection."""

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(
        self, collection: str, filters: Optional[Dict[str, Any]] = None
    ) -> Subscription:
        """Subscribe to insert events of a collection.

        Args:
            collection: Collection (table) name, e.g. "notifications".
            filters: Optional column -> value equality filters.

        Returns:
            The new Subscription. Call close() to release it.
        """
        subscription = Subscription(self, collection, filters)
        with self._lock:
            self._subscriptions.setdefault(collection, []).append(subscription)
        logger.debug(
            "Subscribed %s to %s with filters %s",
            subscription.subscription_id,
            collection,
            subscription.filters,
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscriptions.get(subscription.collection, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self._subscriptions.pop(subscription.collection, None)
        logger.debug("Unsubscribed %s from %s", subscription.subscription_id, subscription.collection)

    def publish(self, collection: str, row: Dict[str, Any]) -> int:
        """Deliver an inserted row to matching subscribers.

        Returns:
            Number of subscriptions the row was delivered to.
        """
        with self._lock:
            subscribers = list(self._subscriptions.get(collection, []))
        delivered = 0
        for subscription in subscribers:
            if subscription.matches(row):
                subscription.deliver(row)
                delivered += 1
        return delivered

    def subscriber_count(self, collection: Optional[str] = None) -> int:
        with self._lock:
            if collection is not None:
                return len(self._subscriptions.get(collection, []))
            return sum(len(subs) for subs in self._subscriptions.values())


# Process-wide feed used by the API
event_feed = EventFeed()


def get_event_feed() -> EventFeed:
    return event_feed
