"""Notification storage and due-date notification derivation."""

import logging
import uuid
from datetime import date, timedelta
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from config import NOTIFICATION_LIST_LIMIT
from core.exceptions import NotificationNotFoundError
from core.realtime import EventFeed, event_feed
from models.notification import NotificationModel
from models.task import TaskModel
from schemas.notification import DUE_DATE_TYPES, DerivationResult, NotificationInfo
from schemas.user import User
from utils.classroom_manager import ClassroomManager
from utils.clock import local_today, utc_now_iso

logger = logging.getLogger(__name__)

NOTIFICATIONS_COLLECTION = "notifications"


def to_notification_info(model: NotificationModel) -> NotificationInfo:
    return NotificationInfo.model_validate(model)


class NotificationManager:
    """Manages notification rows and publishes inserts to the event feed."""

    def __init__(self, db: Session, feed: EventFeed = event_feed):
        self.db = db
        self.feed = feed

    def create_notification(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        task_id: Optional[str] = None,
    ) -> NotificationModel:
        """Insert an unread notification and publish it once committed."""
        model = NotificationModel(
            notification_id=str(uuid.uuid4()),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            task_id=task_id,
            read=False,
            created_at=utc_now_iso(),
        )
        self.db.add(model)
        self.db.commit()
        self.db.refresh(model)
        logger.info("Created %s notification %s for user %s", type, model.notification_id, user_id)
        self.feed.publish(NOTIFICATIONS_COLLECTION, to_notification_info(model).model_dump())
        return model

    def notify_new_task(self, task: TaskModel, student_ids: Iterable[str]) -> List[NotificationModel]:
        """Tell each student about a new task.

        A failure for one student is logged and does not stop the others.
        """
        task_id = task.task_id
        message = f'"{task.title}" was assigned, due {task.due_date.isoformat()}.'
        created = []
        for student_id in student_ids:
            try:
                created.append(
                    self.create_notification(
                        user_id=student_id,
                        type="new_task",
                        title="New Task",
                        message=message,
                        task_id=task_id,
                    )
                )
            except Exception:
                self.db.rollback()
                logger.exception(
                    "Failed to notify student %s about task %s", student_id, task_id
                )
        return created

    def list_notifications(
        self, user_id: str, limit: int = NOTIFICATION_LIST_LIMIT
    ) -> List[NotificationModel]:
        """Newest notifications of a user, at most `limit` of them."""
        return (
            self.db.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .order_by(NotificationModel.created_at.desc())
            .limit(limit)
            .all()
        )

    def count_unread(self, user_id: str) -> int:
        return (
            self.db.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id, NotificationModel.read.is_(False))
            .count()
        )

    def mark_as_read(self, notification_id: str, user: User) -> NotificationModel:
        """Persist read=True on one of the user's notifications.

        Raises:
            NotificationNotFoundError: If it does not exist or belongs to someone else.
        """
        model = (
            self.db.query(NotificationModel)
            .filter(
                NotificationModel.notification_id == notification_id,
                NotificationModel.user_id == user.user_id,
            )
            .first()
        )
        if not model:
            raise NotificationNotFoundError(notification_id)
        if not model.read:
            model.read = True
            self.db.commit()
            self.db.refresh(model)
        return model

    # ------------------------------------------------------------------
    # Due-date derivation
    # ------------------------------------------------------------------
    def has_due_date_notification(self, user_id: str, task_id: str) -> bool:
        return (
            self.db.query(NotificationModel.notification_id)
            .filter(
                NotificationModel.user_id == user_id,
                NotificationModel.task_id == task_id,
                NotificationModel.type.in_(DUE_DATE_TYPES),
            )
            .first()
            is not None
        )

    def _derive_for_task(
        self, user: User, task: TaskModel, today: date
    ) -> Optional[NotificationModel]:
        tomorrow = today + timedelta(days=1)
        if task.due_date == tomorrow:
            return self.create_notification(
                user_id=user.user_id,
                type="due_soon",
                title="Task Due Tomorrow",
                message=f'"{task.title}" is due tomorrow!',
                task_id=task.task_id,
            )
        if task.due_date < today:
            return self.create_notification(
                user_id=user.user_id,
                type="overdue",
                title="Task Overdue",
                message=f'"{task.title}" is overdue!',
                task_id=task.task_id,
            )
        return None

    def derive_due_notifications(
        self, user: Optional[User], today: Optional[date] = None
    ) -> DerivationResult:
        """Create due_soon/overdue notifications for a student's visible tasks.

        A task that already has either kind of due-date notification for the
        student is skipped, so a due_soon notification is never followed by an
        overdue one. A failure on one task is logged and recorded, the
        remaining tasks are still processed.

        Args:
            user: Current user. Anything but an authenticated student is a no-op.
            today: Local calendar date, defaults to today in APP_TIMEZONE.

        Returns:
            DerivationResult with created notifications, skipped tasks and errors.
        """
        result = DerivationResult()
        if user is None or not user.is_student:
            return result

        today = today or local_today()
        classroom_ids = ClassroomManager(self.db).list_classroom_ids_for_student(user.user_id)
        if not classroom_ids:
            return result
        tasks = (
            self.db.query(TaskModel)
            .filter(TaskModel.classroom_id.in_(classroom_ids))
            .order_by(TaskModel.due_date.asc())
            .all()
        )

        for task in tasks:
            task_id = task.task_id
            try:
                if self.has_due_date_notification(user.user_id, task_id):
                    result.skipped_task_ids.append(task_id)
                    continue
                created = self._derive_for_task(user, task, today)
                if created is not None:
                    result.created.append(to_notification_info(created))
            except Exception as e:
                self.db.rollback()
                logger.exception("Failed to derive notification for task %s", task_id)
                result.errors.append(f"{task_id}: {e}")

        if result.created or result.errors:
            logger.info(
                "Due-date pass for %s: %d created, %d skipped, %d failed",
                user.user_id,
                len(result.created),
                len(result.skipped_task_ids),
                len(result.errors),
            )
        return result
