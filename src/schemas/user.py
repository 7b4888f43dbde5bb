"""User schema definitions.

The authenticated `User` is the session context handed to every manager
operation: it carries the identity and the role that gate what the caller
may see and do.
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

import pytz
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

Role = Literal["teacher", "student"]


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str = Field(
        description="The unique identifier for the user.",
        default_factory=lambda: str(uuid.uuid4()),
    )
    email: str = Field(description="Login email address.")
    password_hash: str = Field(default="", exclude=True)
    role: Role = Field(description="Global role of the user.")
    full_name: str = Field(description="Display name.")
    mobile_number: Optional[str] = None
    age: Optional[int] = None
    created_at: str = Field(
        default_factory=lambda: datetime.now(pytz.utc).isoformat()
    )

    @property
    def is_teacher(self) -> bool:
        return self.role == "teacher"

    @property
    def is_student(self) -> bool:
        return self.role == "student"


class UserInfo(BaseModel):
    """Public view of a user (no password hash)."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: str
    role: Role
    full_name: str
    mobile_number: Optional[str] = None
    age: Optional[int] = None
    created_at: str


class SignUpRequest(BaseModel):
    full_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    mobile_number: Optional[str] = Field(default=None, max_length=20)
    age: Optional[int] = Field(default=None, ge=1, le=150)
    role: Role
    password: str = Field(min_length=6, max_length=100)
    confirm_password: str

    @model_validator(mode="before")
    @classmethod
    def strip_fields(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("full_name", "email", "mobile_number"):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip()
        # An empty mobile number means "not given"
        if data.get("mobile_number") == "":
            data["mobile_number"] = None
        return data

    @model_validator(mode="after")
    def check_passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    user: UserInfo
    token: str


class CurrentUserResponse(BaseModel):
    user: UserInfo
