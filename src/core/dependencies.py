"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes.
Managers are built per request around the request-scoped DB session.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from core.realtime import EventFeed, get_event_feed
from utils import chat_manager
from utils import classroom_manager
from utils import notification_manager
from utils import storage_manager
from utils import task_manager
from utils import user_manager


def get_storage_manager() -> storage_manager.StorageManager:
    """Get StorageManager rooted at the configured storage directory."""
    return storage_manager.StorageManager()


def get_user_manager(db: Session = Depends(get_db)) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db)


def get_classroom_manager(
    db: Session = Depends(get_db),
    storage: storage_manager.StorageManager = Depends(get_storage_manager),
) -> classroom_manager.ClassroomManager:
    """Get ClassroomManager instance; storage is cleaned up on classroom delete."""
    return classroom_manager.ClassroomManager(db, storage=storage)


def get_notification_manager(
    db: Session = Depends(get_db),
    feed: EventFeed = Depends(get_event_feed),
) -> notification_manager.NotificationManager:
    """Get NotificationManager publishing to the process event feed."""
    return notification_manager.NotificationManager(db, feed)


def get_task_manager(
    db: Session = Depends(get_db),
    storage: storage_manager.StorageManager = Depends(get_storage_manager),
    notifications: notification_manager.NotificationManager = Depends(
        get_notification_manager
    ),
) -> task_manager.TaskManager:
    """Get TaskManager instance with request-scoped DB session.

    Args:
        db: Database session.
        storage: Object storage for task documents and submissions.
        notifications: Used to notify members about new tasks.

    Returns:
        TaskManager instance.
    """
    return task_manager.TaskManager(db, storage, notifications)


def get_chat_manager(
    db: Session = Depends(get_db),
    storage: storage_manager.StorageManager = Depends(get_storage_manager),
    feed: EventFeed = Depends(get_event_feed),
) -> chat_manager.ChatManager:
    """Get ChatManager instance with request-scoped DB session."""
    return chat_manager.ChatManager(db, storage, feed)


# Type aliases for dependency injection
StorageManagerDep = Annotated[
    storage_manager.StorageManager, Depends(get_storage_manager)
]
UserManagerDep = Annotated[
    user_manager.UserManager, Depends(get_user_manager)
]
ClassroomManagerDep = Annotated[
    classroom_manager.ClassroomManager, Depends(get_classroom_manager)
]
NotificationManagerDep = Annotated[
    notification_manager.NotificationManager, Depends(get_notification_manager)
]
TaskManagerDep = Annotated[
    task_manager.TaskManager, Depends(get_task_manager)
]
ChatManagerDep = Annotated[
    chat_manager.ChatManager, Depends(get_chat_manager)
]
EventFeedDep = Annotated[EventFeed, Depends(get_event_feed)]
