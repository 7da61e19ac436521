"""
Notification service functions.

Notifications are stored rows shown in the app. Browser push subscriptions
are recorded here; delivering pushes is handled outside this service.
"""

from typing import Any, Dict, Iterable, List, Optional
from datetime import timedelta
import logging

from sqlalchemy import select, update, delete, func

from core.utils.datetime import now, isoformat
from database.engine import AsyncSessionLocal
from database.models.notifications import Notification, NotificationEndpoint
from database.models.statuses import Status
from database.models.users import User

logger = logging.getLogger(__name__)


def notification_to_dict(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "header": notification.header,
        "body": notification.body,
        "url": notification.url,
        "has_read": notification.has_read,
        "created_at": isoformat(notification.created_at),
    }


def add_notification(
    session,
    user_id: int,
    header: str,
    body: str,
    url: Optional[str] = None,
) -> Notification:
    """Stage a notification in an open session; the caller commits."""
    notification = Notification(user_id=user_id, header=header, body=body, url=url)
    session.add(notification)
    return notification


async def list_notifications(user_id: int, limit: int = 100) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        notifications = result.scalars().all()

        unread = await session.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.has_read.is_(False),
            )
        )
        return {
            "success": True,
            "notifications": [notification_to_dict(n) for n in notifications],
            "unread": unread.scalar() or 0,
        }


async def mark_read(user_id: int, notification_id: int) -> Dict[str, Any]:
    """Mark one of the caller's notifications as read."""
    async with AsyncSessionLocal() as session:
        notification = await session.get(Notification, notification_id)
        # Someone else's notification is reported as missing
        if not notification or notification.user_id != user_id:
            return {"success": False, "error": "Notification not found", "status_code": 404}

        if not notification.has_read:
            notification.has_read = True
            await session.commit()
        return {"success": True, "notification": notification_to_dict(notification)}


async def mark_all_read(user_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.has_read.is_(False))
            .values(has_read=True)
        )
        await session.commit()
        return {"success": True, "updated": result.rowcount or 0}


async def send_notifications(
    user_ids: Iterable[int],
    header: str,
    body: str,
    url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create the same notification for several users.

    Unknown user ids are skipped and reported back.
    """
    requested: List[int] = list(dict.fromkeys(user_ids))
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User.id).where(User.id.in_(requested)))
        existing = set(result.scalars().all())

        for user_id in requested:
            if user_id in existing:
                add_notification(session, user_id, header, body, url)
        await session.commit()

        skipped = [uid for uid in requested if uid not in existing]
        logger.info(f"Sent notification to {len(existing)} users ({len(skipped)} skipped)")
        return {"success": True, "sent": len(existing), "skipped_user_ids": skipped}


async def subscribe(user_id: int, endpoint: str, keys: Dict[str, Any]) -> Dict[str, Any]:
    """Store a push subscription; re-subscribing the same endpoint updates its keys."""
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(NotificationEndpoint).where(
                NotificationEndpoint.user_id == user_id,
                NotificationEndpoint.endpoint == endpoint,
            )
        )
        subscription = result.scalar_one_or_none()
        created = subscription is None
        if created:
            subscription = NotificationEndpoint(user_id=user_id, endpoint=endpoint, keys=keys)
            session.add(subscription)
        else:
            subscription.keys = keys
        await session.commit()

        return {"success": True, "created": created, "subscription_id": subscription.id}


async def broadcast_to_period(
    period_id: int,
    header: str,
    body: str,
    url: Optional[str] = None,
) -> Dict[str, Any]:
    """Notify every student registered in a period."""
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(Status.student_id).where(Status.period_id == period_id)
        )
        student_ids = list(result.scalars().all())
        for student_id in student_ids:
            add_notification(session, student_id, header, body, url)
        await session.commit()

        logger.info(f"Broadcast to {len(student_ids)} students of period {period_id}")
        return {"success": True, "period_id": period_id, "sent": len(student_ids)}


async def purge_read_notifications(older_than_days: int = 30) -> Dict[str, Any]:
    """Delete read notifications older than the given age."""
    cutoff = now() - timedelta(days=older_than_days)
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            delete(Notification).where(
                Notification.has_read.is_(True),
                Notification.created_at < cutoff,
            )
        )
        await session.commit()
        return {"success": True, "deleted": result.rowcount or 0}
