from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base


class ConversationModel(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint(
            "student_id",
            "teacher_id",
            "classroom_id",
            name="uq_conversations_student_teacher_classroom",
        ),
    )

    conversation_id = Column(String, primary_key=True, index=True)
    student_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True, nullable=False)
    teacher_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True, nullable=False)
    classroom_id = Column(String, ForeignKey("classrooms.classroom_id", ondelete="CASCADE"), index=True, nullable=False)
    created_at = Column(String, nullable=False)

    classroom = relationship("ClassroomModel", back_populates="conversations")
    messages = relationship(
        "MessageModel",
        back_populates="conversation",
        cascade="all, delete-orphan",
    )
