from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base


class ClassroomMemberModel(Base):
    __tablename__ = "classroom_members"
    __table_args__ = (
        UniqueConstraint(
            "classroom_id",
            "student_id",
            name="uq_classroom_members_classroom_student",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(String, ForeignKey("classrooms.classroom_id", ondelete="CASCADE"), index=True, nullable=False)
    student_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), index=True, nullable=False)
    joined_at = Column(String, nullable=False)

    classroom = relationship("ClassroomModel", back_populates="members")
