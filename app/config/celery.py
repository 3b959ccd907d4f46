"""
Celery configuration for the chat backend.

Celery runs the notification dispatch worker:
- notifications.tasks.dispatch_message_notifications drains pending
  message notifications and sends push messages
- django-celery-beat triggers it on a fixed interval (DatabaseScheduler)

Redis is used as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps.

Usage:
    # Run the worker and the scheduler
    celery -A config worker -l info
    celery -A config beat -l info

    # Trigger a dispatch pass by hand
    from notifications.tasks import dispatch_message_notifications
    dispatch_message_notifications.delay()
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
