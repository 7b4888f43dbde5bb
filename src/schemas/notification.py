"""Notification schema definitions."""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

NotificationType = Literal["due_soon", "overdue", "new_task"]

# Types covered by the one-per-(user, task) rule
DUE_DATE_TYPES = ("due_soon", "overdue")


class NotificationInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notification_id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    task_id: Optional[str] = None
    read: bool = False
    created_at: str


class NotificationListResponse(BaseModel):
    notifications: List[NotificationInfo] = Field(default_factory=list)
    unread_count: int = 0


class DerivationResult(BaseModel):
    """Outcome of one due-date notification pass."""

    created: List[NotificationInfo] = Field(default_factory=list)
    skipped_task_ids: List[str] = Field(
        default_factory=list,
        description="Tasks that already had a due-date notification.",
    )
    errors: List[str] = Field(
        default_factory=list,
        description="Per-task failures as 'task_id: message'.",
    )
