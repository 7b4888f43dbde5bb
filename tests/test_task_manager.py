from datetime import date, timedelta

import pytest

from config import ASSIGNMENTS_BUCKET, SUBMISSIONS_BUCKET
from core.exceptions import (
    NotMemberError,
    PermissionDeniedError,
    SubmissionClosedError,
    TaskNotFoundError,
)
from models.notification import NotificationModel
from utils.classroom_manager import ClassroomManager
from utils.notification_manager import NotificationManager
from utils.task_manager import TaskManager

TODAY = date(2025, 3, 10)


@pytest.fixture
def classroom(db, teacher, student):
    manager = ClassroomManager(db)
    classroom = manager.create_classroom(teacher, "Biology 101")
    manager.join_by_invitation_code(classroom.invitation_code, student)
    return classroom


@pytest.fixture
def manager(db, storage, feed):
    return TaskManager(db, storage, NotificationManager(db, feed))


def test_create_task_with_document_notifies_members(db, manager, storage, teacher, student, classroom):
    task = manager.create_task(
        teacher,
        classroom_id=classroom.classroom_id,
        title="Lab report",
        due_date=TODAY,
        priority="high",
        document=("worksheet.pdf", b"%PDF-1.4 worksheet"),
    )

    assert task.document_name == "worksheet.pdf"
    assert task.document_path.startswith(f"{teacher.user_id}/")
    assert task.document_path.endswith(".pdf")
    assert storage.download(ASSIGNMENTS_BUCKET, task.document_path) == b"%PDF-1.4 worksheet"

    notifications = db.query(NotificationModel).filter_by(user_id=student.user_id).all()
    assert [(n.type, n.task_id) for n in notifications] == [("new_task", task.task_id)]


def test_students_cannot_create_tasks(manager, student, classroom):
    with pytest.raises(PermissionDeniedError):
        manager.create_task(student, classroom.classroom_id, "Sneaky", TODAY)


def test_list_tasks_orders_by_due_date_and_carries_completion(manager, teacher, student, classroom):
    later = manager.create_task(teacher, classroom.classroom_id, "Essay", TODAY + timedelta(days=3))
    sooner = manager.create_task(teacher, classroom.classroom_id, "Quiz", TODAY)
    manager.toggle_completion(sooner.task_id, student)

    student_view = manager.list_tasks_for_user(student)
    teacher_view = manager.list_tasks_for_user(teacher)

    assert [t.task_id for t in student_view] == [sooner.task_id, later.task_id]
    assert [t.completed for t in student_view] == [True, False]
    assert [t.completed for t in teacher_view] == [None, None]


def test_list_tasks_search_and_due_date_filter(manager, teacher, student, classroom):
    manager.create_task(
        teacher, classroom.classroom_id, "Essay", TODAY, description="Write about CELLS"
    )
    manager.create_task(teacher, classroom.classroom_id, "Quiz", TODAY + timedelta(days=1))

    assert [t.title for t in manager.list_tasks_for_user(student, query="cells")] == ["Essay"]
    assert [t.title for t in manager.list_tasks_for_user(student, query="QUI")] == ["Quiz"]
    assert [t.title for t in manager.list_tasks_for_user(student, due_on=TODAY)] == ["Essay"]


def test_outsiders_do_not_see_tasks(manager, teacher, other_student, classroom):
    task = manager.create_task(teacher, classroom.classroom_id, "Essay", TODAY)

    assert manager.list_tasks_for_user(other_student) == []
    with pytest.raises(TaskNotFoundError):
        manager.get_visible_task(task.task_id, other_student)


def test_toggle_twice_restores_state(manager, teacher, student, classroom):
    task = manager.create_task(teacher, classroom.classroom_id, "Essay", TODAY)

    first = manager.toggle_completion(task.task_id, student)
    assert first.completed is True
    assert first.completed_at is not None

    second = manager.toggle_completion(task.task_id, student)
    assert second.completed is False
    assert second.completed_at is None


def test_submit_before_and_on_due_date(manager, storage, teacher, student, classroom):
    task = manager.create_task(teacher, classroom.classroom_id, "Essay", TODAY)

    first = manager.submit_task(task.task_id, student, ("essay.docx", b"draft"), today=TODAY)
    first_path = first.document_path
    second = manager.submit_task(task.task_id, student, ("essay-v2.docx", b"final"), today=TODAY)

    assert second.document_name == "essay-v2.docx"
    assert storage.download(SUBMISSIONS_BUCKET, second.document_path) == b"final"
    assert not storage.exists(SUBMISSIONS_BUCKET, first_path)
    assert [s.student_id for s in manager.list_submissions(task.task_id, teacher)] == [student.user_id]


def test_submission_refused_after_due_date(manager, teacher, student, classroom):
    task = manager.create_task(teacher, classroom.classroom_id, "Essay", TODAY)

    with pytest.raises(SubmissionClosedError, match="due date"):
        manager.submit_task(
            task.task_id, student, ("essay.docx", b"late"), today=TODAY + timedelta(days=1)
        )


def test_submission_requires_membership(manager, teacher, other_student, classroom):
    task = manager.create_task(teacher, classroom.classroom_id, "Essay", TODAY)

    with pytest.raises(NotMemberError):
        manager.submit_task(task.task_id, other_student, ("essay.docx", b"x"), today=TODAY)


def test_only_owner_lists_submissions(manager, teacher, student, classroom):
    task = manager.create_task(teacher, classroom.classroom_id, "Essay", TODAY)

    with pytest.raises(PermissionDeniedError):
        manager.list_submissions(task.task_id, student)


def test_failed_insert_removes_uploaded_document(db, manager, storage, teacher, classroom, monkeypatch):
    uploaded = []
    original_upload = storage.upload

    def recording_upload(bucket, path, data):
        uploaded.append(original_upload(bucket, path, data))
        return uploaded[-1]

    def failing_commit():
        raise RuntimeError("database is locked")

    monkeypatch.setattr(storage, "upload", recording_upload)
    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(RuntimeError, match="database is locked"):
        manager.create_task(
            teacher,
            classroom.classroom_id,
            "Lab report",
            TODAY,
            document=("worksheet.pdf", b"%PDF-1.4"),
        )

    assert len(uploaded) == 1
    assert not storage.exists(ASSIGNMENTS_BUCKET, uploaded[0])


def test_failed_notification_does_not_fail_task_creation(
    db, storage, feed, teacher, student, other_student, classroom
):
    ClassroomManager(db).join_by_invitation_code(classroom.invitation_code, other_student)

    class FlakyNotifications(NotificationManager):
        def create_notification(self, user_id, *args, **kwargs):
            if user_id == student.user_id:
                raise RuntimeError("insert failed")
            return super().create_notification(user_id, *args, **kwargs)

    manager = TaskManager(db, storage, FlakyNotifications(db, feed))
    task = manager.create_task(teacher, classroom.classroom_id, "Essay", TODAY)

    assert manager.get_task(task.task_id).title == "Essay"
    notified = [n.user_id for n in db.query(NotificationModel).filter_by(task_id=task.task_id)]
    assert notified == [other_student.user_id]


def test_search_treats_wildcards_literally(manager, teacher, student, classroom):
    manager.create_task(teacher, classroom.classroom_id, "Score 100% on the quiz", TODAY)
    manager.create_task(teacher, classroom.classroom_id, "Score 1000 points", TODAY)
    manager.create_task(teacher, classroom.classroom_id, "read_me first", TODAY)
    manager.create_task(teacher, classroom.classroom_id, "readXme later", TODAY)

    assert [t.title for t in manager.list_tasks_for_user(student, query="100%")] == [
        "Score 100% on the quiz"
    ]
    assert [t.title for t in manager.list_tasks_for_user(student, query="read_me")] == [
        "read_me first"
    ]
