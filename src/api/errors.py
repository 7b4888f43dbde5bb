"""Translation of application errors into HTTP errors."""

from fastapi import HTTPException, status

from core.exceptions import (
    AlreadyMemberError,
    ClassroomAppError,
    ClassroomNotFoundError,
    ConversationNotFoundError,
    InvalidInvitationCodeError,
    InvitationCodeUnavailableError,
    NotificationNotFoundError,
    NotMemberError,
    PermissionDeniedError,
    StorageError,
    SubmissionClosedError,
    TaskNotFoundError,
    ValidationError,
)

_STATUS_BY_ERROR = (
    (
        (
            ClassroomNotFoundError,
            TaskNotFoundError,
            NotificationNotFoundError,
            ConversationNotFoundError,
        ),
        status.HTTP_404_NOT_FOUND,
    ),
    ((PermissionDeniedError, NotMemberError), status.HTTP_403_FORBIDDEN),
    ((AlreadyMemberError, SubmissionClosedError), status.HTTP_409_CONFLICT),
    ((InvalidInvitationCodeError, ValidationError, StorageError), status.HTTP_400_BAD_REQUEST),
    (InvitationCodeUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(exc: ClassroomAppError) -> HTTPException:
    """Build the HTTPException for an application error; its message is the detail."""
    for error_types, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_types):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(exc),
    )
