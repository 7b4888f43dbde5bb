"""Student/teacher chat.

One conversation exists per (student, teacher, classroom). Only its two
participants can read or post messages.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import CHAT_FILES_BUCKET
from core.exceptions import (
    ConversationNotFoundError,
    NotMemberError,
    PermissionDeniedError,
    ValidationError,
)
from core.realtime import EventFeed, event_feed
from models.classroom import ClassroomModel
from models.classroom_member import ClassroomMemberModel
from models.conversation import ConversationModel
from models.message import MessageModel
from models.user import UserModel
from schemas.chat import MessageInfo, TeacherContact
from schemas.user import User
from utils.classroom_manager import ClassroomManager
from utils.clock import utc_now_iso
from utils.storage_manager import StorageManager, build_object_path

logger = logging.getLogger(__name__)

MESSAGES_COLLECTION = "messages"


class ChatManager:
    def __init__(
        self,
        db: Session,
        storage: StorageManager,
        feed: EventFeed = event_feed,
    ):
        self.db = db
        self.storage = storage
        self.feed = feed
        self.classrooms = ClassroomManager(db, storage=storage)

    def list_teachers_for_student(self, user: User) -> List[TeacherContact]:
        """Teachers of the classrooms the student joined, one entry per classroom."""
        rows = (
            self.db.query(ClassroomModel, UserModel)
            .join(ClassroomMemberModel, ClassroomMemberModel.classroom_id == ClassroomModel.classroom_id)
            .join(UserModel, UserModel.user_id == ClassroomModel.teacher_id)
            .filter(ClassroomMemberModel.student_id == user.user_id)
            .order_by(ClassroomModel.name)
            .all()
        )
        return [
            TeacherContact(
                teacher_id=teacher.user_id,
                full_name=teacher.full_name,
                classroom_id=classroom.classroom_id,
                classroom_name=classroom.name,
            )
            for classroom, teacher in rows
        ]

    def _find_conversation(
        self, student_id: str, teacher_id: str, classroom_id: str
    ) -> Optional[ConversationModel]:
        return (
            self.db.query(ConversationModel)
            .filter(
                ConversationModel.student_id == student_id,
                ConversationModel.teacher_id == teacher_id,
                ConversationModel.classroom_id == classroom_id,
            )
            .first()
        )

    def get_or_create_conversation(
        self, user: User, teacher_id: str, classroom_id: str
    ) -> ConversationModel:
        """Open the student's conversation with a classroom's teacher.

        Raises:
            PermissionDeniedError: If the user is not a student or the teacher
                does not own the classroom.
            NotMemberError: If the student is not in the classroom.
        """
        if not user.is_student:
            raise PermissionDeniedError("Only students can start conversations.")
        classroom = self.classrooms.get_classroom(classroom_id)
        if classroom.teacher_id != teacher_id:
            raise PermissionDeniedError("This teacher does not teach this classroom.")
        if not self.classrooms.is_member(classroom_id, user.user_id):
            raise NotMemberError("You are not a member of this classroom")

        conversation = self._find_conversation(user.user_id, teacher_id, classroom_id)
        if conversation:
            return conversation

        conversation = ConversationModel(
            conversation_id=str(uuid.uuid4()),
            student_id=user.user_id,
            teacher_id=teacher_id,
            classroom_id=classroom_id,
            created_at=utc_now_iso(),
        )
        self.db.add(conversation)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self._find_conversation(user.user_id, teacher_id, classroom_id)
            if existing is None:
                raise
            return existing
        self.db.refresh(conversation)
        logger.info("Opened conversation %s", conversation.conversation_id)
        return conversation

    def list_conversations(self, user: User) -> List[ConversationModel]:
        column = ConversationModel.teacher_id if user.is_teacher else ConversationModel.student_id
        return (
            self.db.query(ConversationModel)
            .filter(column == user.user_id)
            .order_by(ConversationModel.created_at.desc())
            .all()
        )

    def get_conversation(self, conversation_id: str, user: User) -> ConversationModel:
        """Get a conversation the user takes part in.

        Raises:
            ConversationNotFoundError: If missing or the user is not a participant.
        """
        conversation = (
            self.db.query(ConversationModel)
            .filter(ConversationModel.conversation_id == conversation_id)
            .first()
        )
        if conversation is None or user.user_id not in (
            conversation.student_id,
            conversation.teacher_id,
        ):
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def list_messages(self, conversation_id: str, user: User) -> List[MessageModel]:
        self.get_conversation(conversation_id, user)
        return (
            self.db.query(MessageModel)
            .filter(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.asc())
            .all()
        )

    def send_message(
        self,
        conversation_id: str,
        user: User,
        content: Optional[str] = None,
        file: Optional[Tuple[str, bytes]] = None,
    ) -> MessageModel:
        """Post a message with text, a file, or both.

        The file is stored in the chat-files bucket and referenced by its
        public URL.

        Raises:
            ConversationNotFoundError: If the user is not a participant.
            ValidationError: If the message has neither text nor file.
            StorageError: If the file upload fails.
        """
        self.get_conversation(conversation_id, user)
        content = content.strip() if content else None
        if not content and file is None:
            raise ValidationError("Message must have text or a file")

        file_url = file_name = file_type = None
        if file is not None:
            file_name, data = file
            path = self.storage.upload(
                CHAT_FILES_BUCKET, build_object_path(user.user_id, file_name), data
            )
            file_url = self.storage.get_public_url(CHAT_FILES_BUCKET, path)
            file_type = StorageManager.guess_content_type(file_name)

        message = MessageModel(
            message_id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            sender_id=user.user_id,
            content=content or None,
            file_url=file_url,
            file_name=file_name,
            file_type=file_type,
            created_at=utc_now_iso(),
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        self.feed.publish(MESSAGES_COLLECTION, MessageInfo.model_validate(message).model_dump())
        return message
