from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base


class TaskSubmissionModel(Base):
    __tablename__ = "task_submissions"
    __table_args__ = (
        UniqueConstraint(
            "task_id",
            "student_id",
            name="uq_task_submissions_task_student",
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
    document_path = Column(String, nullable=False)  # path inside the submissions bucket
    document_name = Column(String, nullable=False)
    submitted_at = Column(String, nullable=False)

    task = relationship("TaskModel", back_populates="submissions")
