from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base


class ClassroomModel(Base):
    __tablename__ = "classrooms"

    classroom_id = Column(String, primary_key=True, index=True)
    teacher_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String, nullable=False)
    # Unique at the store level; issuance also checks before insert
    invitation_code = Column(String(8), unique=True, index=True, nullable=False)
    created_at = Column(String, nullable=False)

    members = relationship(
        "ClassroomMemberModel",
        back_populates="classroom",
        cascade="all, delete-orphan",
    )
    tasks = relationship(
        "TaskModel",
        back_populates="classroom",
        cascade="all, delete-orphan",
    )
    conversations = relationship(
        "ConversationModel",
        back_populates="classroom",
        cascade="all, delete-orphan",
    )
