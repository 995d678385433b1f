from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from careerpath.middlewares.auth_middleware import AuthState, require_student
from careerpath.schemas.notification_schemas import (
    NotificationListResponse,
    NotificationResponse,
    NotificationStats,
)
from careerpath.services.notifications.notification_emitter import (
    NotificationEmitter,
    get_notification_emitter,
)
from careerpath.utils.logging import get_logger
from careerpath.utils.responses import ResponseBuilder

notifications_router = APIRouter()
logger = get_logger()


@notifications_router.get("/")
async def get_notifications(
    request: Request,
    current_user: Annotated[AuthState, Depends(require_student)],
    emitter: Annotated[NotificationEmitter, Depends(get_notification_emitter)],
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    limit: int = Query(
        default=50, ge=1, le=100, description="Maximum number of notifications to return"
    ),
):
    """Newest first."""
    notifications = await emitter.list_notifications(
        current_user.user_id, unread_only=unread_only, limit=limit
    )
    data = NotificationListResponse(
        notifications=[
            NotificationResponse.model_validate(n).model_dump(by_alias=True)
            for n in notifications
        ],
        unread_count=sum(1 for n in notifications if not n.read),
    )
    return ResponseBuilder.success(
        request=request,
        data=data.model_dump(by_alias=True),
        message=f"Retrieved {len(notifications)} notifications",
    )


@notifications_router.patch("/{notification_id}/read")
async def mark_notification_as_read(
    request: Request,
    notification_id: str,
    current_user: Annotated[AuthState, Depends(require_student)],
    emitter: Annotated[NotificationEmitter, Depends(get_notification_emitter)],
):
    notification = await emitter.mark_read(current_user.user_id, notification_id)
    return ResponseBuilder.success(
        request=request,
        data=NotificationResponse.model_validate(notification).model_dump(by_alias=True),
        message="Notification marked as read",
    )


@notifications_router.patch("/read-all")
async def mark_all_notifications_as_read(
    request: Request,
    current_user: Annotated[AuthState, Depends(require_student)],
    emitter: Annotated[NotificationEmitter, Depends(get_notification_emitter)],
):
    count = await emitter.mark_all_read(current_user.user_id)
    return ResponseBuilder.success(
        request=request,
        data=NotificationStats(marked_read_count=count).model_dump(by_alias=True),
        message=f"Marked {count} notifications as read",
    )
