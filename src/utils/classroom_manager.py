"""Classroom management utilities.

Covers classroom creation with invitation code issuance, code redemption,
membership and deletion.
"""

import logging
import secrets
import uuid
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import ASSIGNMENTS_BUCKET, INVITATION_CODE_LENGTH, SUBMISSIONS_BUCKET
from core.exceptions import (
    AlreadyMemberError,
    ClassroomNotFoundError,
    InvalidInvitationCodeError,
    InvitationCodeUnavailableError,
    NotMemberError,
    PermissionDeniedError,
)
from models.classroom import ClassroomModel
from models.classroom_member import ClassroomMemberModel
from models.user import UserModel
from schemas.user import User
from utils.clock import utc_now_iso
from utils.storage_manager import StorageManager

logger = logging.getLogger(__name__)

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

# Attempts at inserting a classroom when the code loses a race to another insert
MAX_CREATE_ATTEMPTS = 5


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def make_invitation_code(random_bytes: Optional[bytes] = None) -> str:
    """Render 6 random bytes as an 8 character uppercase code.

    Each byte becomes two base-36 characters (left-padded with '0'), the
    pieces are joined, truncated to 8 characters and upper-cased.
    """
    if random_bytes is None:
        random_bytes = secrets.token_bytes(6)
    code = "".join(_to_base36(b).rjust(2, "0") for b in random_bytes)
    return code[:INVITATION_CODE_LENGTH].upper()


def issue_invitation_code(
    code_exists: Callable[[str], bool],
    generator: Callable[[], str] = make_invitation_code,
) -> str:
    """Draw codes until one is not held by any classroom.

    Args:
        code_exists: Store lookup, True when a classroom holds the code.
        generator: Code source.

    Returns:
        A code that was free at check time. It is reserved only by the
        classroom insert that follows.
    """
    while True:
        code = generator()
        if not code_exists(code):
            return code
        logger.info("Invitation code collision on %s, regenerating", code)


def normalize_invitation_code(code: str) -> str:
    return code.strip().upper()


class ClassroomManager:
    """Manages classroom, membership, and invitation operations."""

    def __init__(
        self,
        db: Session,
        code_generator: Callable[[], str] = make_invitation_code,
        storage: Optional[StorageManager] = None,
    ):
        self.db = db
        self.code_generator = code_generator
        self.storage = storage

    # ------------------------------------------------------------------
    # Invitation codes
    # ------------------------------------------------------------------
    def invitation_code_exists(self, code: str) -> bool:
        return (
            self.db.query(ClassroomModel.classroom_id)
            .filter(ClassroomModel.invitation_code == code)
            .first()
            is not None
        )

    def generate_invitation_code(self) -> str:
        return issue_invitation_code(self.invitation_code_exists, self.code_generator)

    def get_classroom_by_invitation_code(self, code: str) -> Optional[ClassroomModel]:
        """Privileged lookup used for code redemption.

        Students cannot see classrooms they have not joined, this lookup
        bypasses that visibility rule and only ever matches on the code.
        """
        return (
            self.db.query(ClassroomModel)
            .filter(ClassroomModel.invitation_code == normalize_invitation_code(code))
            .first()
        )

    # ------------------------------------------------------------------
    # Classrooms
    # ------------------------------------------------------------------
    def create_classroom(self, user: User, name: str) -> ClassroomModel:
        """Create a classroom owned by a teacher.

        Args:
            user: Current user, must be a teacher.
            name: Validated display name.

        Returns:
            The created ClassroomModel.

        Raises:
            PermissionDeniedError: If the user is not a teacher.
            InvitationCodeUnavailableError: If every insert lost the code race.
        """
        if not user.is_teacher:
            raise PermissionDeniedError(
                "You don't have permission to create classrooms. "
                "Ensure your account role is set to 'teacher'."
            )

        for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
            code = self.generate_invitation_code()
            classroom = ClassroomModel(
                classroom_id=str(uuid.uuid4()),
                teacher_id=user.user_id,
                name=name,
                invitation_code=code,
                created_at=utc_now_iso(),
            )
            self.db.add(classroom)
            try:
                self.db.commit()
            except IntegrityError:
                # Another classroom took the code between check and insert
                self.db.rollback()
                logger.warning(
                    "Invitation code %s taken on insert (attempt %d/%d)",
                    code,
                    attempt,
                    MAX_CREATE_ATTEMPTS,
                )
                continue
            self.db.refresh(classroom)
            logger.info(
                "Created classroom %s (%s) for teacher %s",
                classroom.classroom_id,
                name,
                user.user_id,
            )
            return classroom
        raise InvitationCodeUnavailableError(MAX_CREATE_ATTEMPTS)

    def get_classroom(self, classroom_id: str) -> ClassroomModel:
        model = (
            self.db.query(ClassroomModel)
            .filter(ClassroomModel.classroom_id == classroom_id)
            .first()
        )
        if not model:
            raise ClassroomNotFoundError(classroom_id)
        return model

    def get_owned_classroom(self, classroom_id: str, user: User) -> ClassroomModel:
        """Get a classroom and check the user is its teacher."""
        model = self.get_classroom(classroom_id)
        if model.teacher_id != user.user_id:
            raise PermissionDeniedError("Only the classroom's teacher can do this.")
        return model

    def list_classrooms_for_teacher(self, teacher_id: str) -> List[ClassroomModel]:
        return (
            self.db.query(ClassroomModel)
            .filter(ClassroomModel.teacher_id == teacher_id)
            .order_by(ClassroomModel.created_at.desc())
            .all()
        )

    def count_students(self, classroom_id: str) -> int:
        return (
            self.db.query(func.count(ClassroomMemberModel.id))
            .filter(ClassroomMemberModel.classroom_id == classroom_id)
            .scalar()
        ) or 0

    def list_memberships(self, student_id: str) -> List[ClassroomMemberModel]:
        return (
            self.db.query(ClassroomMemberModel)
            .filter(ClassroomMemberModel.student_id == student_id)
            .order_by(ClassroomMemberModel.joined_at.desc())
            .all()
        )

    def list_classroom_ids_for_student(self, student_id: str) -> List[str]:
        return [m.classroom_id for m in self.list_memberships(student_id)]

    def visible_classroom_ids(self, user: User) -> List[str]:
        """Classrooms whose tasks the user can see."""
        if user.is_teacher:
            return [c.classroom_id for c in self.list_classrooms_for_teacher(user.user_id)]
        return self.list_classroom_ids_for_student(user.user_id)

    def is_member(self, classroom_id: str, student_id: str) -> bool:
        return (
            self.db.query(ClassroomMemberModel.id)
            .filter(
                ClassroomMemberModel.classroom_id == classroom_id,
                ClassroomMemberModel.student_id == student_id,
            )
            .first()
            is not None
        )

    def list_members(self, classroom_id: str) -> List[dict]:
        query = (
            self.db.query(ClassroomMemberModel, UserModel)
            .join(UserModel, UserModel.user_id == ClassroomMemberModel.student_id)
            .filter(ClassroomMemberModel.classroom_id == classroom_id)
            .order_by(ClassroomMemberModel.joined_at)
        )
        results = []
        for membership, member in query.all():
            results.append(
                {
                    "student_id": member.user_id,
                    "full_name": member.full_name,
                    "email": member.email,
                    "joined_at": membership.joined_at,
                }
            )
        return results

    def list_member_ids(self, classroom_id: str) -> List[str]:
        rows = (
            self.db.query(ClassroomMemberModel.student_id)
            .filter(ClassroomMemberModel.classroom_id == classroom_id)
            .all()
        )
        return [row[0] for row in rows]

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------
    def join_by_invitation_code(self, code: str, user: User) -> ClassroomModel:
        """Join a classroom using an invitation code.

        Args:
            code: Invitation code as typed; trimmed and upper-cased here.
            user: Current user, must be a student.

        Returns:
            The joined classroom.

        Raises:
            PermissionDeniedError: If the user is not a student.
            InvalidInvitationCodeError: If no classroom holds the code.
            AlreadyMemberError: If the student already joined the classroom.
        """
        if not user.is_student:
            raise PermissionDeniedError("Only students can join classrooms.")

        normalized = normalize_invitation_code(code)
        classroom = self.get_classroom_by_invitation_code(normalized)
        if classroom is None:
            logger.warning("Rejected invitation code %s", normalized)
            raise InvalidInvitationCodeError(normalized)

        if self.is_member(classroom.classroom_id, user.user_id):
            raise AlreadyMemberError(classroom.classroom_id, user.user_id)

        membership = ClassroomMemberModel(
            classroom_id=classroom.classroom_id,
            student_id=user.user_id,
            joined_at=utc_now_iso(),
        )
        self.db.add(membership)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # Concurrent redemption by the same student won the insert
            self.db.rollback()
            raise AlreadyMemberError(classroom.classroom_id, user.user_id) from exc
        logger.info("Student %s joined classroom %s", user.user_id, classroom.classroom_id)
        return classroom

    def leave_classroom(self, classroom_id: str, user: User) -> None:
        """Remove the student's membership.

        Raises:
            ClassroomNotFoundError: If the classroom does not exist.
            NotMemberError: If the user is not a member.
        """
        self.get_classroom(classroom_id)
        membership = (
            self.db.query(ClassroomMemberModel)
            .filter(
                ClassroomMemberModel.classroom_id == classroom_id,
                ClassroomMemberModel.student_id == user.user_id,
            )
            .first()
        )
        if not membership:
            raise NotMemberError("You are not a member of this classroom")

        self.db.delete(membership)
        self.db.commit()
        logger.info("Student %s left classroom %s", user.user_id, classroom_id)

    def delete_classroom(self, classroom_id: str, user: User) -> None:
        """Delete a classroom and everything attached to it.

        Only the owning teacher can delete the classroom.
        Stored task documents and submissions are removed once the rows are
        gone.

        Raises:
            ClassroomNotFoundError: If classroom not found.
            PermissionDeniedError: If user is not the owner.
        """
        classroom = self.get_owned_classroom(classroom_id, user)
        stored_objects = []
        for task in classroom.tasks:
            if task.document_path:
                stored_objects.append((ASSIGNMENTS_BUCKET, task.document_path))
            stored_objects.extend(
                (SUBMISSIONS_BUCKET, s.document_path) for s in task.submissions
            )

        # ORM cascades remove members, tasks (with completions, submissions,
        # notifications) and conversations (with messages)
        self.db.delete(classroom)
        self.db.commit()
        logger.info("Deleted classroom: %s", classroom_id)

        if self.storage is not None:
            for bucket, path in stored_objects:
                self.storage.delete(bucket, path)
