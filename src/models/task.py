from sqlalchemy import Column, Date, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base


class TaskModel(Base):
    __tablename__ = "tasks"

    task_id = Column(String, primary_key=True, index=True)
    classroom_id = Column(String, ForeignKey("classrooms.classroom_id", ondelete="CASCADE"), index=True, nullable=False)
    created_by = Column(String, ForeignKey("users.user_id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(String, nullable=False, default="medium")  # 'high', 'medium' or 'low'
    due_date = Column(Date, index=True, nullable=False)
    document_path = Column(String, nullable=True)  # path inside the assignments bucket
    document_name = Column(String, nullable=True)
    created_at = Column(String, nullable=False)

    classroom = relationship("ClassroomModel", back_populates="tasks")
    completions = relationship(
        "TaskCompletionModel",
        back_populates="task",
        cascade="all, delete-orphan",
    )
    submissions = relationship(
        "TaskSubmissionModel",
        back_populates="task",
        cascade="all, delete-orphan",
    )
    notifications = relationship(
        "NotificationModel",
        back_populates="task",
        cascade="all, delete-orphan",
    )
