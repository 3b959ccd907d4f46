"""
Notifications app for push delivery of chat messages.

This app provides:
- PendingMessageNotification: one row per message awaiting a push
- NotificationDispatchService: batched, per-receiver push dispatch
- Web Push (VAPID) and Expo push channels
- Celery task run every minute by celery-beat

Usage:
    from notifications.services import NotificationDispatchService

    summary = NotificationDispatchService.dispatch_pending()
    summary.as_dict()  # {"processed": 3, "success": 2, "failed": 1}
"""
