"""Classroom schema definitions."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import CLASSROOM_NAME_MAX_LENGTH, CLASSROOM_NAME_MIN_LENGTH


class CreateClassroomRequest(BaseModel):
    name: str = Field(description="Display name, e.g. 'Math 101'.")

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < CLASSROOM_NAME_MIN_LENGTH:
            raise ValueError(
                f"Name must be at least {CLASSROOM_NAME_MIN_LENGTH} characters"
            )
        if len(value) > CLASSROOM_NAME_MAX_LENGTH:
            raise ValueError(
                f"Name must be at most {CLASSROOM_NAME_MAX_LENGTH} characters"
            )
        return value


class JoinClassroomRequest(BaseModel):
    invitation_code: str = Field(min_length=1, description="Invitation code shared by the teacher.")


class ClassroomInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    classroom_id: str
    teacher_id: str
    name: str
    invitation_code: Optional[str] = Field(
        default=None,
        description="Only shown to the owning teacher.",
    )
    created_at: str
    student_count: Optional[int] = None


class MembershipInfo(BaseModel):
    """A student's view of one joined classroom."""

    membership_id: int
    classroom_id: str
    classroom_name: str
    teacher_id: str
    joined_at: str


class ClassroomMemberInfo(BaseModel):
    student_id: str
    full_name: str
    email: str
    joined_at: str


class ClassroomListResponse(BaseModel):
    classrooms: List[ClassroomInfo] = Field(default_factory=list)
    memberships: List[MembershipInfo] = Field(default_factory=list)
