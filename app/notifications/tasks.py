"""
Celery tasks for push notification delivery.

Tasks:
    dispatch_message_notifications: One dispatch pass over pending rows

Scheduling:
    Run every NOTIFICATION_DISPATCH_INTERVAL_SECONDS by celery-beat
    (PeriodicTask created in migrations/0002_add_dispatch_schedule.py).

Usage:
    from notifications.tasks import dispatch_message_notifications

    dispatch_message_notifications.delay()
"""

from __future__ import annotations

from celery import shared_task

from notifications.constants import DISPATCH_CONFIG
from notifications.services import NotificationDispatchService


@shared_task(ignore_result=False)
def dispatch_message_notifications(batch_size: int = DISPATCH_CONFIG.BATCH_SIZE) -> dict[str, int]:
    """
    Push pending message notifications.

    Failed rows are not retried by Celery; the next scheduled run picks
    them up again until they reach the attempt cap.

    Returns:
        {"processed": int, "success": int, "failed": int}
    """
    summary = NotificationDispatchService.dispatch_pending(batch_size=batch_size)
    return summary.as_dict()
