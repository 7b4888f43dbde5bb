from .base import Base
from .user import UserModel
from .classroom import ClassroomModel
from .classroom_member import ClassroomMemberModel
from .task import TaskModel
from .task_completion import TaskCompletionModel
from .task_submission import TaskSubmissionModel
from .notification import NotificationModel
from .conversation import ConversationModel
from .message import MessageModel

__all__ = [
    "Base",
    "UserModel",
    "ClassroomModel",
    "ClassroomMemberModel",
    "TaskModel",
    "TaskCompletionModel",
    "TaskSubmissionModel",
    "NotificationModel",
    "ConversationModel",
    "MessageModel",
]
