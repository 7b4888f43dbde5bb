"""Custom exception classes for the Classroom Task Manager.

This module defines application-specific exceptions following Google Python
Style Guide.
"""


class ClassroomAppError(Exception):
    """Base exception for all Classroom Task Manager errors."""

    pass


class ValidationError(ClassroomAppError):
    """Raised when input fails validation before reaching the store."""

    pass


class PermissionDeniedError(ClassroomAppError):
    """Raised when the current user may not perform an operation."""

    pass


class ClassroomNotFoundError(ClassroomAppError):
    """Raised when a requested classroom cannot be found."""

    def __init__(self, classroom_id: str):
        """Initialize the exception.

        Args:
            classroom_id: The ID of the classroom that was not found.
        """
        self.classroom_id = classroom_id
        super().__init__(f"Classroom '{classroom_id}' not found")


class TaskNotFoundError(ClassroomAppError):
    """Raised when a requested task cannot be found."""

    def __init__(self, task_id: str):
        """Initialize the exception.

        Args:
            task_id: The ID of the task that was not found.
        """
        self.task_id = task_id
        super().__init__(f"Task '{task_id}' not found")


class NotificationNotFoundError(ClassroomAppError):
    """Raised when a requested notification cannot be found."""

    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__(f"Notification '{notification_id}' not found")


class ConversationNotFoundError(ClassroomAppError):
    """Raised when a requested conversation cannot be found."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation '{conversation_id}' not found")


class InvalidInvitationCodeError(ClassroomAppError):
    """Raised when no classroom holds the given invitation code."""

    def __init__(self, code: str):
        self.code = code
        super().__init__("Invalid invitation code")


class AlreadyMemberError(ClassroomAppError):
    """Raised when a student redeems a code for a classroom they already joined."""

    def __init__(self, classroom_id: str, student_id: str):
        self.classroom_id = classroom_id
        self.student_id = student_id
        super().__init__("You're already a member of this classroom")


class NotMemberError(ClassroomAppError):
    """Raised when a student acts on a classroom they do not belong to."""

    pass


class SubmissionClosedError(ClassroomAppError):
    """Raised when a submission arrives after the task's due date."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__("The due date for this task has passed")


class StorageError(ClassroomAppError):
    """Raised when an object storage operation fails."""

    pass


class InvitationCodeUnavailableError(ClassroomAppError):
    """Raised when no unique invitation code could be reserved for a classroom."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__("Could not reserve a unique invitation code, please try again")
