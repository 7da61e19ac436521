"""
Notification endpoints.

Users read their own notifications; IOM staff send them to users directly
or to every student of a period through a background task.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, status
from pydantic import BaseModel, Field

from api.dependencies import raise_for_result
from core.middleware.authorization import Permission, require_permission
from api.services import notifications as notification_service
from database.models.users import User
from workers.tasks.notifications import broadcast_period_notification

router = APIRouter(prefix="/notifications", tags=["notifications"])


class SendNotificationRequest(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)
    header: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)
    url: Optional[str] = Field(None, max_length=1000)


class BroadcastRequest(BaseModel):
    """Notification for every student registered in a period."""
    period_id: int
    header: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)
    url: Optional[str] = Field(None, max_length=1000)


class SubscriptionRequest(BaseModel):
    """Browser push subscription."""
    endpoint: str = Field(..., min_length=1, max_length=1000)
    keys: Dict[str, Any] = Field(default_factory=dict, description="p256dh and auth keys")


@router.get("", summary="List Notifications")
async def list_notifications(
    current_user: User = Depends(require_permission(Permission.NOTIFICATION_READ)),
):
    return await notification_service.list_notifications(current_user.id)


@router.post("/read-all", summary="Mark All Read")
async def mark_all_read(
    current_user: User = Depends(require_permission(Permission.NOTIFICATION_READ)),
):
    return await notification_service.mark_all_read(current_user.id)


@router.post("/subscriptions", summary="Register Push Subscription")
async def subscribe(
    data: SubscriptionRequest,
    current_user: User = Depends(require_permission(Permission.NOTIFICATION_READ)),
):
    return await notification_service.subscribe(current_user.id, data.endpoint, data.keys)


@router.post(
    "/broadcast",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Broadcast To Period",
    dependencies=[Depends(require_permission(Permission.NOTIFICATION_SEND))],
)
async def broadcast(data: BroadcastRequest):
    """Queue a notification for every student registered in the period."""
    task = broadcast_period_notification.delay(
        period_id=data.period_id,
        header=data.header,
        body=data.body,
        url=data.url,
    )
    return {"success": True, "task_id": task.id}


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Send Notification",
    dependencies=[Depends(require_permission(Permission.NOTIFICATION_SEND))],
)
async def send_notification(data: SendNotificationRequest):
    return await notification_service.send_notifications(
        data.user_ids, data.header, data.body, data.url
    )


@router.post("/{notification_id}/read", summary="Mark Read")
async def mark_read(
    notification_id: int = Path(..., description="Notification ID"),
    current_user: User = Depends(require_permission(Permission.NOTIFICATION_READ)),
):
    result = await notification_service.mark_read(current_user.id, notification_id)
    raise_for_result(result)
    return result
