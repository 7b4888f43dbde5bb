"""Classroom management routes."""

from typing import List

from fastapi import APIRouter, Depends, status

from api.errors import http_error
from api.routes.auth import get_current_user
from core.dependencies import ClassroomManagerDep
from core.exceptions import ClassroomAppError, ClassroomNotFoundError
from models.classroom import ClassroomModel
from schemas.classroom import (
    ClassroomInfo,
    ClassroomListResponse,
    ClassroomMemberInfo,
    CreateClassroomRequest,
    JoinClassroomRequest,
    MembershipInfo,
)
from schemas.user import User

router = APIRouter(prefix="/api/classrooms", tags=["Classroom"])


def _build_classroom_info(
    model: ClassroomModel, user: User, student_count=None
) -> ClassroomInfo:
    owner = model.teacher_id == user.user_id
    return ClassroomInfo(
        classroom_id=model.classroom_id,
        teacher_id=model.teacher_id,
        name=model.name,
        invitation_code=model.invitation_code if owner else None,
        created_at=model.created_at,
        student_count=student_count,
    )


@router.post(
    "",
    response_model=ClassroomInfo,
    status_code=status.HTTP_201_CREATED,
    summary="Create classroom",
)
def create_classroom(
    req: CreateClassroomRequest,
    classroom_manager: ClassroomManagerDep,
    current_user: User = Depends(get_current_user),
) -> ClassroomInfo:
    """Create a classroom and issue its invitation code (teachers only)."""
    try:
        model = classroom_manager.create_classroom(current_user, req.name)
    except ClassroomAppError as e:
        raise http_error(e)
    return _build_classroom_info(model, current_user, student_count=0)


@router.get("", response_model=ClassroomListResponse, summary="List classrooms")
def list_classrooms(
    classroom_manager: ClassroomManagerDep,
    current_user: User = Depends(get_current_user),
) -> ClassroomListResponse:
    """List the teacher's classrooms or the student's memberships.

    Returns:
        Teachers get `classrooms` newest first with student counts; students
        get `memberships` with the classroom name.
    """
    if current_user.is_teacher:
        models = classroom_manager.list_classrooms_for_teacher(current_user.user_id)
        return ClassroomListResponse(
            classrooms=[
                _build_classroom_info(
                    model,
                    current_user,
                    student_count=classroom_manager.count_students(model.classroom_id),
                )
                for model in models
            ]
        )

    results = []
    for membership in classroom_manager.list_memberships(current_user.user_id):
        try:
            model = classroom_manager.get_classroom(membership.classroom_id)
        except ClassroomNotFoundError:
            continue
        results.append(
            MembershipInfo(
                membership_id=membership.id,
                classroom_id=model.classroom_id,
                classroom_name=model.name,
                teacher_id=model.teacher_id,
                joined_at=membership.joined_at,
            )
        )
    return ClassroomListResponse(memberships=results)


@router.post("/join", response_model=ClassroomInfo, summary="Join classroom by invitation code")
def join_classroom(
    req: JoinClassroomRequest,
    classroom_manager: ClassroomManagerDep,
    current_user: User = Depends(get_current_user),
) -> ClassroomInfo:
    """Join a classroom using an invitation code.

    Args:
        req: Join request with invitation code.
        classroom_manager: Injected ClassroomManager instance.
        current_user: Current authenticated user.

    Returns:
        ClassroomInfo for the joined classroom.

    Raises:
        HTTPException: 400 for an unknown code, 409 if already a member.
    """
    try:
        model = classroom_manager.join_by_invitation_code(req.invitation_code, current_user)
    except ClassroomAppError as e:
        raise http_error(e)
    return _build_classroom_info(model, current_user)


@router.get(
    "/{classroom_id}/members",
    response_model=List[ClassroomMemberInfo],
    summary="List classroom members",
)
def list_members(
    classroom_id: str,
    classroom_manager: ClassroomManagerDep,
    current_user: User = Depends(get_current_user),
) -> List[ClassroomMemberInfo]:
    try:
        classroom_manager.get_owned_classroom(classroom_id, current_user)
    except ClassroomAppError as e:
        raise http_error(e)
    return [ClassroomMemberInfo(**member) for member in classroom_manager.list_members(classroom_id)]


@router.delete("/{classroom_id}/membership", summary="Leave classroom")
def leave_classroom(
    classroom_id: str,
    classroom_manager: ClassroomManagerDep,
    current_user: User = Depends(get_current_user),
) -> dict:
    try:
        classroom_manager.leave_classroom(classroom_id, current_user)
    except ClassroomAppError as e:
        raise http_error(e)
    return {"success": True, "message": "Left classroom successfully"}


@router.delete("/{classroom_id}", summary="Delete classroom")
def delete_classroom(
    classroom_id: str,
    classroom_manager: ClassroomManagerDep,
    current_user: User = Depends(get_current_user),
) -> dict:
    """Delete a classroom with its memberships, tasks and conversations."""
    try:
        classroom_manager.delete_classroom(classroom_id, current_user)
    except ClassroomAppError as e:
        raise http_error(e)
    return {"success": True, "message": "Classroom deleted successfully"}
