"""Notification database model.

At most one 'due_soon' or 'overdue' row may exist per (user_id, task_id). This
is checked before insert by the notification manager, not by a constraint.
"""

from sqlalchemy import Boolean, Column, String, Text, ForeignKey
from sqlalchemy.orm import relationship

from .base import Base


class NotificationModel(Base):
    """Notification database model."""

    __tablename__ = "notifications"

    notification_id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True, nullable=False)
    type = Column(String, index=True, nullable=False)  # 'due_soon', 'overdue', 'new_task'
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    task_id = Column(String, ForeignKey("tasks.task_id", ondelete="CASCADE"), index=True, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(String, index=True, nullable=False)  # ISO format string

    task = relationship("TaskModel", back_populates="notifications")
