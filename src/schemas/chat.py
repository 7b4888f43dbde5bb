"""Chat schema definitions."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TeacherContact(BaseModel):
    """A teacher a student can talk to, one entry per classroom."""

    teacher_id: str
    full_name: str
    classroom_id: str
    classroom_name: str


class OpenConversationRequest(BaseModel):
    teacher_id: str = Field(min_length=1)
    classroom_id: str = Field(min_length=1)


class ConversationInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    conversation_id: str
    student_id: str
    teacher_id: str
    classroom_id: str
    created_at: str


class MessageInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    message_id: str
    conversation_id: str
    sender_id: str
    content: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    created_at: str
