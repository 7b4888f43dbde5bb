"""Task schema definitions."""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Priority = Literal["high", "medium", "low"]


class CreateTaskRequest(BaseModel):
    classroom_id: str = Field(min_length=1)
    title: str = Field(description="Task title.")
    description: Optional[str] = None
    priority: Priority = "medium"
    due_date: date = Field(description="Calendar due date (no time component).")

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Task title cannot be empty")
        return value

    @field_validator("description")
    @classmethod
    def normalize_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class TaskInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    task_id: str
    classroom_id: str
    created_by: str
    title: str
    description: Optional[str] = None
    priority: Priority
    due_date: date
    document_path: Optional[str] = None
    document_name: Optional[str] = None
    created_at: str
    completed: Optional[bool] = Field(
        default=None,
        description="Completion flag of the requesting student; None for teachers.",
    )


class TaskCompletionInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    task_id: str
    student_id: str
    completed: bool
    completed_at: Optional[str] = None


class TaskSubmissionInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    task_id: str
    student_id: str
    document_path: str
    document_name: str
    submitted_at: str
