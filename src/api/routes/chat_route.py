"""Chat routes between students and their teachers."""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, WebSocket, WebSocketDisconnect, status

from api.errors import http_error
from api.routes.auth import decode_token, get_current_user
from core.dependencies import ChatManagerDep, EventFeedDep, UserManagerDep
from core.exceptions import ClassroomAppError
from schemas.chat import ConversationInfo, MessageInfo, OpenConversationRequest, TeacherContact
from schemas.user import User
from utils.chat_manager import MESSAGES_COLLECTION

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["Chat"])


@router.get("/teachers", response_model=List[TeacherContact], summary="List my teachers")
def list_teachers(
    chat_manager: ChatManagerDep,
    current_user: User = Depends(get_current_user),
) -> List[TeacherContact]:
    return chat_manager.list_teachers_for_student(current_user)


@router.post("/conversations", response_model=ConversationInfo, summary="Open conversation")
def open_conversation(
    req: OpenConversationRequest,
    chat_manager: ChatManagerDep,
    current_user: User = Depends(get_current_user),
) -> ConversationInfo:
    """Return the conversation with a classroom's teacher, creating it on first use."""
    try:
        conversation = chat_manager.get_or_create_conversation(
            current_user, req.teacher_id, req.classroom_id
        )
    except ClassroomAppError as e:
        raise http_error(e)
    return ConversationInfo.model_validate(conversation)


@router.get("/conversations", response_model=List[ConversationInfo], summary="List conversations")
def list_conversations(
    chat_manager: ChatManagerDep,
    current_user: User = Depends(get_current_user),
) -> List[ConversationInfo]:
    return [ConversationInfo.model_validate(c) for c in chat_manager.list_conversations(current_user)]


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=List[MessageInfo],
    summary="List messages",
)
def list_messages(
    conversation_id: str,
    chat_manager: ChatManagerDep,
    current_user: User = Depends(get_current_user),
) -> List[MessageInfo]:
    try:
        messages = chat_manager.list_messages(conversation_id, current_user)
    except ClassroomAppError as e:
        raise http_error(e)
    return [MessageInfo.model_validate(m) for m in messages]


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageInfo,
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
)
async def send_message(
    conversation_id: str,
    content: Optional[str] = Form(default=None),
    file: Optional[UploadFile] = File(default=None, description="Optional attachment"),
    current_user: User = Depends(get_current_user),
    chat_manager: ChatManagerDep = None,
) -> MessageInfo:
    """Send text, a file, or both. Attachments are served from a public URL."""
    attachment = None
    if file is not None and file.filename:
        attachment = (file.filename, await file.read())
    try:
        message = chat_manager.send_message(
            conversation_id, current_user, content=content, file=attachment
        )
    except ClassroomAppError as e:
        raise http_error(e)
    return MessageInfo.model_validate(message)


@router.websocket("/conversations/{conversation_id}/ws")
async def message_socket(
    websocket: WebSocket,
    conversation_id: str,
    feed: EventFeedDep,
    chat_manager: ChatManagerDep,
    user_manager: UserManagerDep,
    token: str = Query(...),
):
    """Stream new messages of one conversation to a participant."""
    user_id = decode_token(token)
    user = user_manager.get_user_by_id(user_id) if user_id else None
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    try:
        chat_manager.get_conversation(conversation_id, user)
    except ClassroomAppError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    # Subscribed before accept, so a connected client misses nothing
    subscription = feed.subscribe(
        MESSAGES_COLLECTION, filters={"conversation_id": conversation_id}
    )

    async def push_messages():
        while True:
            row = await subscription.get()
            await websocket.send_json({"type": "message", "message": row})

    pusher = None
    try:
        await websocket.accept()
        pusher = asyncio.create_task(push_messages())
        while True:
            # Clients only send keep-alives; messages are posted over HTTP
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Message socket closed for conversation %s", conversation_id)
    finally:
        if pusher is not None:
            pusher.cancel()
        subscription.close()
        logger.debug(
            "%d message subscribers left", feed.subscriber_count(MESSAGES_COLLECTION)
        )
