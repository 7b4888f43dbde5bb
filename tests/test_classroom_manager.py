from datetime import timedelta

import pytest

from config import ASSIGNMENTS_BUCKET, SUBMISSIONS_BUCKET
from core.exceptions import (
    AlreadyMemberError,
    InvalidInvitationCodeError,
    InvitationCodeUnavailableError,
    NotMemberError,
    PermissionDeniedError,
)
from models.classroom_member import ClassroomMemberModel
from utils.classroom_manager import MAX_CREATE_ATTEMPTS, ClassroomManager
from utils.clock import local_today
from utils.task_manager import TaskManager


@pytest.fixture
def manager(db):
    return ClassroomManager(db)


def test_teacher_creates_and_student_joins(manager, teacher, student):
    classroom = manager.create_classroom(teacher, "Biology 101")

    joined = manager.join_by_invitation_code(classroom.invitation_code.lower() + "  ", student)

    assert joined.classroom_id == classroom.classroom_id
    assert manager.is_member(classroom.classroom_id, student.user_id)
    assert manager.count_students(classroom.classroom_id) == 1
    assert manager.list_classroom_ids_for_student(student.user_id) == [classroom.classroom_id]


def test_only_teachers_create_classrooms(manager, student):
    with pytest.raises(PermissionDeniedError):
        manager.create_classroom(student, "Biology 101")


def test_only_students_join(manager, teacher):
    classroom = manager.create_classroom(teacher, "Biology 101")
    with pytest.raises(PermissionDeniedError):
        manager.join_by_invitation_code(classroom.invitation_code, teacher)


def test_unknown_code_is_rejected(manager, student):
    with pytest.raises(InvalidInvitationCodeError, match="Invalid invitation code"):
        manager.join_by_invitation_code("NOPE0000", student)


def test_joining_twice_adds_no_row(db, manager, teacher, student):
    classroom = manager.create_classroom(teacher, "Biology 101")
    manager.join_by_invitation_code(classroom.invitation_code, student)

    with pytest.raises(AlreadyMemberError, match="already a member"):
        manager.join_by_invitation_code(classroom.invitation_code, student)

    rows = db.query(ClassroomMemberModel).filter_by(classroom_id=classroom.classroom_id).count()
    assert rows == 1


def test_visible_classrooms_by_role(manager, teacher, student, other_student):
    mine = manager.create_classroom(teacher, "Chemistry")
    manager.create_classroom(teacher, "Physics")
    manager.join_by_invitation_code(mine.invitation_code, student)

    assert len(manager.visible_classroom_ids(teacher)) == 2
    assert manager.visible_classroom_ids(student) == [mine.classroom_id]
    assert manager.visible_classroom_ids(other_student) == []


def test_list_members(manager, teacher, student):
    classroom = manager.create_classroom(teacher, "Chemistry")
    manager.join_by_invitation_code(classroom.invitation_code, student)

    members = manager.list_members(classroom.classroom_id)

    assert [m["email"] for m in members] == ["student@example.com"]
    assert members[0]["full_name"] == "Sam Student"


def test_leave_classroom(manager, teacher, student):
    classroom = manager.create_classroom(teacher, "Chemistry")
    manager.join_by_invitation_code(classroom.invitation_code, student)

    manager.leave_classroom(classroom.classroom_id, student)

    assert not manager.is_member(classroom.classroom_id, student.user_id)
    with pytest.raises(NotMemberError):
        manager.leave_classroom(classroom.classroom_id, student)


def test_delete_classroom_removes_memberships(db, manager, teacher, student, user_manager):
    classroom = manager.create_classroom(teacher, "Chemistry")
    manager.join_by_invitation_code(classroom.invitation_code, student)
    other_teacher = user_manager.create_user(
        email="other.teacher@example.com",
        password="secret123",
        role="teacher",
        full_name="Otto Teacher",
    )

    with pytest.raises(PermissionDeniedError):
        manager.delete_classroom(classroom.classroom_id, other_teacher)

    manager.delete_classroom(classroom.classroom_id, teacher)

    assert manager.list_classrooms_for_teacher(teacher.user_id) == []
    assert db.query(ClassroomMemberModel).count() == 0


def test_delete_classroom_removes_stored_files(db, storage, teacher, student):
    manager = ClassroomManager(db, storage=storage)
    tasks = TaskManager(db, storage)
    classroom = manager.create_classroom(teacher, "Chemistry")
    manager.join_by_invitation_code(classroom.invitation_code, student)
    task = tasks.create_task(
        teacher,
        classroom.classroom_id,
        "Lab report",
        local_today() + timedelta(days=3),
        document=("worksheet.pdf", b"%PDF-1.4"),
    )
    submission = tasks.submit_task(task.task_id, student, ("report.txt", b"my report"))
    task_path, submission_path = task.document_path, submission.document_path
    assert storage.exists(ASSIGNMENTS_BUCKET, task_path)
    assert storage.exists(SUBMISSIONS_BUCKET, submission_path)

    manager.delete_classroom(classroom.classroom_id, teacher)

    assert not storage.exists(ASSIGNMENTS_BUCKET, task_path)
    assert not storage.exists(SUBMISSIONS_BUCKET, submission_path)


class CodeAlwaysLooksFree(ClassroomManager):
    def invitation_code_exists(self, code):
        return False


def test_create_classroom_gives_up_after_repeated_code_conflicts(db, teacher):
    taken = ClassroomManager(db).create_classroom(teacher, "Chemistry")
    manager = CodeAlwaysLooksFree(db, code_generator=lambda: taken.invitation_code)

    with pytest.raises(InvitationCodeUnavailableError) as exc_info:
        manager.create_classroom(teacher, "Physics")

    assert exc_info.value.attempts == MAX_CREATE_ATTEMPTS
    assert [c.name for c in manager.list_classrooms_for_teacher(teacher.user_id)] == ["Chemistry"]
