"""Notification fan-out and cleanup tasks."""

import asyncio
import logging
from typing import Optional
from celery import Task

from workers.celery_app import celery_app
from api.services import notifications as notification_service
from database.engine import close_db

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run a service coroutine from a worker process.

    Pooled connections belong to the loop that opened them, so the engine
    is disposed before the loop closes.
    """
    async def runner():
        try:
            return await coro
        finally:
            await close_db()

    return asyncio.run(runner())


@celery_app.task(name="workers.tasks.notifications.broadcast_period_notification", bind=True)
def broadcast_period_notification(
    self: Task,
    period_id: int,
    header: str,
    body: str,
    url: Optional[str] = None,
) -> dict:
    """Create a notification for every student registered in a period.

    Args:
        period_id: Target period
        header: Notification title
        body: Notification text
        url: Optional link opened from the notification

    Returns:
        Dictionary with the number of notifications created
    """
    try:
        result = run_async(
            notification_service.broadcast_to_period(period_id, header, body, url)
        )
        return {"status": "sent", "period_id": period_id, "sent": result["sent"]}
    except Exception as e:
        logger.error(f"Broadcast to period {period_id} failed: {e}")
        raise self.retry(exc=e, countdown=60, max_retries=3)


@celery_app.task(name="workers.tasks.notifications.purge_read_notifications")
def purge_read_notifications(older_than_days: int = 30) -> dict:
    """Delete read notifications older than ``older_than_days``."""
    result = run_async(notification_service.purge_read_notifications(older_than_days))
    logger.info(f"Purged {result['deleted']} read notifications")
    return {"status": "done", "deleted": result["deleted"]}
