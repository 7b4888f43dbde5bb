"""Realtime notification state for one signed-in user.

Insert events arrive through an event feed subscription filtered on the
user's id. Every change, local or remote, goes through `reduce_notifications`,
a pure function over an immutable `NotificationState`.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from core.realtime import EventFeed, Subscription, event_feed
from schemas.notification import NotificationInfo
from schemas.user import User

logger = logging.getLogger(__name__)

Alert = Dict[str, str]


@dataclass(frozen=True)
class NotificationState:
    notifications: Tuple[NotificationInfo, ...] = ()
    unread_count: int = 0


@dataclass(frozen=True)
class NotificationsLoaded:
    notifications: Tuple[NotificationInfo, ...]
    unread_count: int


@dataclass(frozen=True)
class NotificationInserted:
    notification: NotificationInfo


@dataclass(frozen=True)
class NotificationRead:
    notification_id: str


NotificationEvent = Union[NotificationsLoaded, NotificationInserted, NotificationRead]


def reduce_notifications(state: NotificationState, event: NotificationEvent) -> NotificationState:
    """Return the state that results from applying one event."""
    if isinstance(event, NotificationsLoaded):
        return NotificationState(tuple(event.notifications), max(0, event.unread_count))

    if isinstance(event, NotificationInserted):
        return NotificationState(
            (event.notification,) + state.notifications,
            state.unread_count + (0 if event.notification.read else 1),
        )

    if isinstance(event, NotificationRead):
        notifications = tuple(
            n.model_copy(update={"read": True}) if n.notification_id == event.notification_id else n
            for n in state.notifications
        )
        # Local count only, not reconciled with other devices
        return replace(
            state,
            notifications=notifications,
            unread_count=max(0, state.unread_count - 1),
        )

    raise TypeError(f"Unknown notification event: {event!r}")


def build_alert(notification: NotificationInfo) -> Alert:
    """Transient alert shown when a notification arrives."""
    return {"title": notification.title, "description": notification.message}


class NotificationListener:
    """Keeps a user's notification state in sync with the event feed.

    Call `open()`, then `load()` with the list read from the database, and
    `close()` when done. The listener also works as a context manager.
    """

    def __init__(
        self,
        user_id: str,
        feed: EventFeed = event_feed,
        on_alert: Optional[Callable[[Alert], None]] = None,
    ):
        self.user_id = user_id
        self.feed = feed
        self.on_alert = on_alert
        self.state = NotificationState()
        self._subscription: Optional[Subscription] = None

    @property
    def is_open(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    def open(self) -> "NotificationListener":
        """Start listening for inserts.

        Open before reading the initial list from the database, then pass
        that list to `load()`, so no insert falls between the two.
        """
        if self._subscription is None:
            self._subscription = self.feed.subscribe(
                "notifications", filters={"user_id": self.user_id}
            )
        return self

    def load(
        self,
        initial: Iterable[NotificationInfo],
        unread_count: Optional[int] = None,
    ) -> "NotificationListener":
        """Replace the state with the initial list.

        Inserts queued since `open()` are applied on top, except those
        already in the list.
        """
        initial = tuple(initial)
        if unread_count is None:
            unread_count = sum(1 for n in initial if not n.read)
        self.dispatch(NotificationsLoaded(initial, unread_count))
        self.drain()
        return self

    def _is_known(self, notification_id: str) -> bool:
        return any(n.notification_id == notification_id for n in self.state.notifications)

    def dispatch(self, event: NotificationEvent) -> NotificationState:
        self.state = reduce_notifications(self.state, event)
        return self.state

    def _apply_row(self, row: dict) -> Optional[NotificationInfo]:
        notification = NotificationInfo.model_validate(row)
        if self._is_known(notification.notification_id):
            logger.debug("Skipping already loaded notification %s", notification.notification_id)
            return None
        self.dispatch(NotificationInserted(notification))
        if self.on_alert is not None:
            self.on_alert(build_alert(notification))
        return notification

    async def next_notification(self) -> NotificationInfo:
        """Wait for the next inserted notification and apply it."""
        if self._subscription is None:
            raise RuntimeError("Listener is not open")
        while True:
            row = await self._subscription.get()
            notification = self._apply_row(row)
            if notification is not None:
                return notification

    def drain(self) -> List[NotificationInfo]:
        """Apply every insert already queued, without waiting."""
        if self._subscription is None:
            return []
        applied = []
        while True:
            row = self._subscription.get_nowait()
            if row is None:
                return applied
            notification = self._apply_row(row)
            if notification is not None:
                applied.append(notification)

    def mark_read(self, notification_id: str, user: User, manager) -> NotificationState:
        """Persist the read flag, then apply it locally.

        Args:
            notification_id: Notification to mark.
            user: Current user, must own the notification.
            manager: NotificationManager bound to a database session.
        """
        manager.mark_as_read(notification_id, user)
        return self.dispatch(NotificationRead(notification_id))

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
            logger.debug("Notification listener closed for %s", self.user_id)

    def __enter__(self) -> "NotificationListener":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
