"""Task routes: creation, listing, completion and submissions."""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import ValidationError as PydanticValidationError

from api.errors import http_error
from api.routes.auth import get_current_user
from config import ASSIGNMENTS_BUCKET, SUBMISSIONS_BUCKET
from core.dependencies import StorageManagerDep, TaskManagerDep
from core.exceptions import ClassroomAppError
from schemas.task import (
    CreateTaskRequest,
    Priority,
    TaskCompletionInfo,
    TaskInfo,
    TaskSubmissionInfo,
)
from schemas.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["Task"])


@router.post(
    "",
    response_model=TaskInfo,
    status_code=status.HTTP_201_CREATED,
    summary="Create task",
)
async def create_task(
    classroom_id: str = Form(...),
    title: str = Form(...),
    due_date: date = Form(..., description="Due date as YYYY-MM-DD"),
    priority: Priority = Form(default="medium"),
    description: Optional[str] = Form(default=None),
    document: Optional[UploadFile] = File(default=None, description="Optional assignment document"),
    current_user: User = Depends(get_current_user),
    task_manager: TaskManagerDep = None,
) -> TaskInfo:
    """Create a task in one of the teacher's classrooms.

    Sent as multipart form data so an assignment document can be attached.
    Members of the classroom receive a new task notification.
    """
    try:
        req = CreateTaskRequest(
            classroom_id=classroom_id,
            title=title,
            due_date=due_date,
            priority=priority,
            description=description,
        )
    except PydanticValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.errors()[0]["msg"],
        )

    attachment = None
    if document is not None and document.filename:
        attachment = (document.filename, await document.read())

    try:
        model = task_manager.create_task(
            current_user,
            classroom_id=req.classroom_id,
            title=req.title,
            due_date=req.due_date,
            priority=req.priority,
            description=req.description,
            document=attachment,
        )
    except ClassroomAppError as e:
        raise http_error(e)
    return TaskInfo.model_validate(model)


@router.get("", response_model=List[TaskInfo], summary="List tasks")
def list_tasks(
    q: Optional[str] = Query(default=None, description="Search in title and description"),
    due_date: Optional[date] = Query(default=None, description="Only tasks due on this date"),
    current_user: User = Depends(get_current_user),
    task_manager: TaskManagerDep = None,
) -> List[TaskInfo]:
    """List visible tasks ordered by due date.

    Students' entries carry their own completion flag.
    """
    return task_manager.list_tasks_for_user(current_user, query=q, due_on=due_date)


@router.get("/{task_id}", response_model=TaskInfo, summary="Get task")
def get_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    task_manager: TaskManagerDep = None,
) -> TaskInfo:
    try:
        model = task_manager.get_visible_task(task_id, current_user)
    except ClassroomAppError as e:
        raise http_error(e)
    info = TaskInfo.model_validate(model)
    if current_user.is_student:
        completion = task_manager.get_completion(task_id, current_user.user_id)
        info.completed = bool(completion and completion.completed)
    return info


@router.get("/{task_id}/document", summary="Download task document")
def download_task_document(
    task_id: str,
    storage: StorageManagerDep,
    current_user: User = Depends(get_current_user),
    task_manager: TaskManagerDep = None,
) -> FileResponse:
    try:
        path, name = task_manager.get_task_document(task_id, current_user)
        file_path = storage.get_file_path(ASSIGNMENTS_BUCKET, path)
    except ClassroomAppError as e:
        raise http_error(e)
    return FileResponse(
        file_path,
        filename=name,
        media_type=storage.guess_content_type(name),
    )


@router.post(
    "/{task_id}/completion",
    response_model=TaskCompletionInfo,
    summary="Toggle task completion",
)
def toggle_completion(
    task_id: str,
    current_user: User = Depends(get_current_user),
    task_manager: TaskManagerDep = None,
) -> TaskCompletionInfo:
    try:
        completion = task_manager.toggle_completion(task_id, current_user)
    except ClassroomAppError as e:
        raise http_error(e)
    return TaskCompletionInfo.model_validate(completion)


@router.post(
    "/{task_id}/submission",
    response_model=TaskSubmissionInfo,
    summary="Submit work for a task",
)
async def submit_task(
    task_id: str,
    file: UploadFile = File(..., description="Submitted work"),
    current_user: User = Depends(get_current_user),
    task_manager: TaskManagerDep = None,
) -> TaskSubmissionInfo:
    """Upload the student's work, replacing an earlier submission.

    Raises:
        HTTPException: 409 once the due date has passed.
    """
    data = await file.read()
    try:
        submission = task_manager.submit_task(
            task_id, current_user, (file.filename or "submission", data)
        )
    except ClassroomAppError as e:
        raise http_error(e)
    return TaskSubmissionInfo.model_validate(submission)


@router.get(
    "/{task_id}/submissions",
    response_model=List[TaskSubmissionInfo],
    summary="List submissions for a task",
)
def list_submissions(
    task_id: str,
    current_user: User = Depends(get_current_user),
    task_manager: TaskManagerDep = None,
) -> List[TaskSubmissionInfo]:
    try:
        submissions = task_manager.list_submissions(task_id, current_user)
    except ClassroomAppError as e:
        raise http_error(e)
    return [TaskSubmissionInfo.model_validate(s) for s in submissions]


@router.get(
    "/{task_id}/submissions/{student_id}/document",
    summary="Download a submission",
)
def download_submission(
    task_id: str,
    student_id: str,
    storage: StorageManagerDep,
    current_user: User = Depends(get_current_user),
    task_manager: TaskManagerDep = None,
) -> FileResponse:
    try:
        submission = task_manager.get_submission_document(task_id, student_id, current_user)
        file_path = storage.get_file_path(SUBMISSIONS_BUCKET, submission.document_path)
    except ClassroomAppError as e:
        raise http_error(e)
    return FileResponse(
        file_path,
        filename=submission.document_name,
        media_type=storage.guess_content_type(submission.document_name),
    )
