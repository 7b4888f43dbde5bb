from sqlalchemy import Boolean, Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base


class TaskCompletionModel(Base):
    __tablename__ = "task_completions"
    __table_args__ = (
        UniqueConstraint(
            "task_id",
            "student_id",
            name="uq_task_completions_task_student",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(
        String,
        ForeignKey("tasks.task_id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    student_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(String, nullable=True)  # set only while completed

    task = relationship("TaskModel", back_populates="completions")
