"""Notification routes and the realtime notification socket."""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from api.errors import http_error
from api.routes.auth import decode_token, get_current_user
from core.dependencies import EventFeedDep, NotificationManagerDep, UserManagerDep
from core.exceptions import ClassroomAppError
from schemas.notification import (
    DerivationResult,
    NotificationInfo,
    NotificationListResponse,
)
from schemas.user import User
from utils.notification_listener import NotificationListener, build_alert
from utils.notification_manager import to_notification_info

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notification"])


def _list_response(notification_manager, user: User) -> NotificationListResponse:
    return NotificationListResponse(
        notifications=[
            to_notification_info(m)
            for m in notification_manager.list_notifications(user.user_id)
        ],
        unread_count=notification_manager.count_unread(user.user_id),
    )


@router.get("", response_model=NotificationListResponse, summary="List notifications")
def list_notifications(
    notification_manager: NotificationManagerDep,
    current_user: User = Depends(get_current_user),
) -> NotificationListResponse:
    """Newest 20 notifications of the current user and the unread count."""
    return _list_response(notification_manager, current_user)


@router.post(
    "/derive",
    response_model=NotificationListResponse,
    summary="Create due-date notifications",
)
def derive_notifications(
    notification_manager: NotificationManagerDep,
    current_user: User = Depends(get_current_user),
) -> NotificationListResponse:
    """Run the due-date pass for a student, then return the refreshed list.

    Clients call this once at the start of a student session. For teachers
    it only returns the list.
    """
    result: DerivationResult = notification_manager.derive_due_notifications(current_user)
    if result.errors:
        logger.warning(
            "Due-date pass for %s finished with %d errors",
            current_user.user_id,
            len(result.errors),
        )
    return _list_response(notification_manager, current_user)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationInfo,
    summary="Mark notification as read",
)
def mark_as_read(
    notification_id: str,
    notification_manager: NotificationManagerDep,
    current_user: User = Depends(get_current_user),
) -> NotificationInfo:
    try:
        model = notification_manager.mark_as_read(notification_id, current_user)
    except ClassroomAppError as e:
        raise http_error(e)
    return to_notification_info(model)


@router.websocket("/ws")
async def notification_socket(
    websocket: WebSocket,
    feed: EventFeedDep,
    notification_manager: NotificationManagerDep,
    user_manager: UserManagerDep,
    token: str = Query(...),
):
    """Push the user's new notifications as they are inserted.

    On connect the socket sends a snapshot (`type="snapshot"`). Every insert
    is sent as `type="notification"` with the row, the transient alert and the
    local unread count. A client message `{"action": "mark_read", "notification_id": ...}`
    persists the read flag and answers with the new unread count.
    """
    user_id = decode_token(token)
    user = user_manager.get_user_by_id(user_id) if user_id else None
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    # Subscribe before reading the snapshot so no insert is missed
    listener = NotificationListener(user.user_id, feed=feed).open()

    async def push_inserts():
        while True:
            notification = await listener.next_notification()
            await websocket.send_json(
                {
                    "type": "notification",
                    "notification": notification.model_dump(),
                    "alert": build_alert(notification),
                    "unread_count": listener.state.unread_count,
                }
            )

    pusher = None
    try:
        snapshot = [to_notification_info(m) for m in notification_manager.list_notifications(user.user_id)]
        listener.load(snapshot, unread_count=notification_manager.count_unread(user.user_id))
        await websocket.send_json(
            {
                "type": "snapshot",
                "notifications": [n.model_dump() for n in listener.state.notifications],
                "unread_count": listener.state.unread_count,
            }
        )
        pusher = asyncio.create_task(push_inserts())
        while True:
            message = await websocket.receive_json()
            if message.get("action") != "mark_read":
                continue
            notification_id = message.get("notification_id", "")
            try:
                listener.mark_read(notification_id, user, notification_manager)
            except ClassroomAppError as e:
                await websocket.send_json({"type": "error", "detail": str(e)})
                continue
            await websocket.send_json(
                {
                    "type": "read",
                    "notification_id": notification_id,
                    "unread_count": listener.state.unread_count,
                }
            )
    except WebSocketDisconnect:
        logger.debug("Notification socket closed for %s", user.user_id)
    finally:
        if pusher is not None:
            pusher.cancel()
        listener.close()
