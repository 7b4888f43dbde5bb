"""Task management utilities.

Tasks belong to a classroom. Teachers see the tasks of the classrooms they
own, students those of the classrooms they joined.
"""

import logging
import uuid
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from config import ASSIGNMENTS_BUCKET, SUBMISSIONS_BUCKET
from core.exceptions import (
    NotMemberError,
    PermissionDeniedError,
    SubmissionClosedError,
    TaskNotFoundError,
    ValidationError,
)
from models.task import TaskModel
from models.task_completion import TaskCompletionModel
from models.task_submission import TaskSubmissionModel
from schemas.task import TaskInfo
from schemas.user import User
from utils.classroom_manager import ClassroomManager
from utils.clock import local_today, utc_now_iso
from utils.notification_manager import NotificationManager
from utils.storage_manager import StorageManager, build_object_path

logger = logging.getLogger(__name__)

# (original file name, file bytes)
UploadedFile = Tuple[str, bytes]


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class TaskManager:
    """Manages tasks, completion flags and submissions."""

    def __init__(
        self,
        db: Session,
        storage: StorageManager,
        notification_manager: Optional[NotificationManager] = None,
    ):
        self.db = db
        self.storage = storage
        self.classrooms = ClassroomManager(db, storage=storage)
        self.notifications = notification_manager

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------
    def create_task(
        self,
        user: User,
        classroom_id: str,
        title: str,
        due_date: date,
        priority: str = "medium",
        description: Optional[str] = None,
        document: Optional[UploadedFile] = None,
    ) -> TaskModel:
        """Create a task in a classroom owned by the teacher.

        The optional document is uploaded to the assignments bucket first; if
        the upload fails nothing is inserted, and if the insert fails the
        uploaded document is removed again.

        Raises:
            PermissionDeniedError: If the user does not own the classroom.
            ClassroomNotFoundError: If the classroom does not exist.
            StorageError: If the document upload fails.
        """
        if not user.is_teacher:
            raise PermissionDeniedError("Only teachers can create tasks.")
        self.classrooms.get_owned_classroom(classroom_id, user)

        document_path = None
        document_name = None
        if document is not None:
            filename, data = document
            document_path = self.storage.upload(
                ASSIGNMENTS_BUCKET, build_object_path(user.user_id, filename), data
            )
            document_name = filename

        task = TaskModel(
            task_id=str(uuid.uuid4()),
            classroom_id=classroom_id,
            created_by=user.user_id,
            title=title,
            description=description,
            priority=priority,
            due_date=due_date,
            document_path=document_path,
            document_name=document_name,
            created_at=utc_now_iso(),
        )
        self.db.add(task)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            if document_path:
                self.storage.delete(ASSIGNMENTS_BUCKET, document_path)
            raise
        self.db.refresh(task)
        logger.info("Created task %s in classroom %s", task.task_id, classroom_id)

        if self.notifications is not None:
            self.notifications.notify_new_task(
                task, self.classrooms.list_member_ids(classroom_id)
            )
        return task

    def get_task(self, task_id: str) -> TaskModel:
        task = self.db.query(TaskModel).filter(TaskModel.task_id == task_id).first()
        if not task:
            raise TaskNotFoundError(task_id)
        return task

    def get_visible_task(self, task_id: str, user: User) -> TaskModel:
        """Get a task the user can see.

        Raises:
            TaskNotFoundError: If the task does not exist or is not visible.
        """
        task = self.get_task(task_id)
        if task.classroom_id not in self.classrooms.visible_classroom_ids(user):
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks_for_user(
        self,
        user: User,
        query: Optional[str] = None,
        due_on: Optional[date] = None,
    ) -> List[TaskInfo]:
        """List visible tasks ordered by due date.

        Args:
            user: Current user.
            query: Optional case-insensitive search over title and description.
            due_on: Optional exact due date (calendar view).

        Returns:
            TaskInfo list; for students each entry carries their completion flag.
        """
        classroom_ids = self.classrooms.visible_classroom_ids(user)
        if not classroom_ids:
            return []

        q = self.db.query(TaskModel).filter(TaskModel.classroom_id.in_(classroom_ids))
        if query and query.strip():
            pattern = f"%{escape_like(query.strip().lower())}%"
            q = q.filter(
                or_(
                    func.lower(TaskModel.title).like(pattern, escape="\\"),
                    func.lower(TaskModel.description).like(pattern, escape="\\"),
                )
            )
        if due_on is not None:
            q = q.filter(TaskModel.due_date == due_on)
        tasks = q.order_by(TaskModel.due_date.asc(), TaskModel.created_at.asc()).all()

        completions: Dict[str, bool] = {}
        if user.is_student:
            completions = self.completion_flags(user.user_id)

        results = []
        for task in tasks:
            info = TaskInfo.model_validate(task)
            if user.is_student:
                info.completed = completions.get(task.task_id, False)
            results.append(info)
        return results

    def get_task_document(self, task_id: str, user: User) -> Tuple[str, str]:
        """Return (object path, file name) of the task's attached document."""
        task = self.get_visible_task(task_id, user)
        if not task.document_path:
            raise TaskNotFoundError(task_id)
        return task.document_path, task.document_name or task.document_path.rsplit("/", 1)[-1]

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------
    def completion_flags(self, student_id: str) -> Dict[str, bool]:
        rows = (
            self.db.query(TaskCompletionModel.task_id, TaskCompletionModel.completed)
            .filter(TaskCompletionModel.student_id == student_id)
            .all()
        )
        return {task_id: bool(completed) for task_id, completed in rows}

    def get_completion(self, task_id: str, student_id: str) -> Optional[TaskCompletionModel]:
        return (
            self.db.query(TaskCompletionModel)
            .filter(
                TaskCompletionModel.task_id == task_id,
                TaskCompletionModel.student_id == student_id,
            )
            .first()
        )

    def toggle_completion(self, task_id: str, user: User) -> TaskCompletionModel:
        """Flip the student's completion flag for a task.

        A missing row counts as not completed. `completed_at` is set when the
        flag becomes true and cleared when it becomes false.
        """
        if not user.is_student:
            raise PermissionDeniedError("Only students can complete tasks.")
        self.get_visible_task(task_id, user)

        completion = self.get_completion(task_id, user.user_id)
        if completion is None:
            completion = TaskCompletionModel(
                task_id=task_id, student_id=user.user_id, completed=False
            )
            self.db.add(completion)

        completion.completed = not completion.completed
        completion.completed_at = utc_now_iso() if completion.completed else None
        self.db.commit()
        self.db.refresh(completion)
        logger.info(
            "Task %s marked %s by %s",
            task_id,
            "complete" if completion.completed else "incomplete",
            user.user_id,
        )
        return completion

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------
    def submit_task(
        self,
        task_id: str,
        user: User,
        document: UploadedFile,
        today: Optional[date] = None,
    ) -> TaskSubmissionModel:
        """Upload the student's work for a task, replacing an earlier submission.

        Raises:
            PermissionDeniedError: If the user is not a student.
            NotMemberError: If the student left or never joined the classroom.
            SubmissionClosedError: If the due date has passed.
            ValidationError: If the file is empty.
        """
        if not user.is_student:
            raise PermissionDeniedError("Only students can submit work.")
        task = self.get_task(task_id)
        if not self.classrooms.is_member(task.classroom_id, user.user_id):
            raise NotMemberError("You are not a member of this classroom")

        today = today or local_today()
        if task.due_date < today:
            raise SubmissionClosedError(task_id)

        filename, data = document
        if not data:
            raise ValidationError("Submitted file is empty")

        path = self.storage.upload(
            SUBMISSIONS_BUCKET, build_object_path(user.user_id, filename), data
        )

        submission = (
            self.db.query(TaskSubmissionModel)
            .filter(
                TaskSubmissionModel.task_id == task_id,
                TaskSubmissionModel.student_id == user.user_id,
            )
            .first()
        )
        previous_path = None
        if submission is None:
            submission = TaskSubmissionModel(task_id=task_id, student_id=user.user_id)
            self.db.add(submission)
        else:
            previous_path = submission.document_path
        submission.document_path = path
        submission.document_name = filename
        submission.submitted_at = utc_now_iso()
        self.db.commit()
        self.db.refresh(submission)

        if previous_path and previous_path != path:
            self.storage.delete(SUBMISSIONS_BUCKET, previous_path)
        logger.info("Student %s submitted task %s", user.user_id, task_id)
        return submission

    def get_submission(self, task_id: str, student_id: str) -> Optional[TaskSubmissionModel]:
        return (
            self.db.query(TaskSubmissionModel)
            .filter(
                TaskSubmissionModel.task_id == task_id,
                TaskSubmissionModel.student_id == student_id,
            )
            .first()
        )

    def list_submissions(self, task_id: str, user: User) -> List[TaskSubmissionModel]:
        """Submissions for a task, visible to the owning teacher only."""
        task = self.get_task(task_id)
        self.classrooms.get_owned_classroom(task.classroom_id, user)
        return (
            self.db.query(TaskSubmissionModel)
            .filter(TaskSubmissionModel.task_id == task_id)
            .order_by(TaskSubmissionModel.submitted_at.desc())
            .all()
        )

    def get_submission_document(
        self, task_id: str, student_id: str, user: User
    ) -> TaskSubmissionModel:
        """A submission readable by its student or the owning teacher."""
        task = self.get_task(task_id)
        if user.user_id != student_id:
            self.classrooms.get_owned_classroom(task.classroom_id, user)
        submission = self.get_submission(task_id, student_id)
        if submission is None:
            raise TaskNotFoundError(task_id)
        return submission
