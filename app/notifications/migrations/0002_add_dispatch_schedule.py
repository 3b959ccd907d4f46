"""
Add celery-beat schedule for message notification dispatch.

Creates the periodic task that runs dispatch_message_notifications
every 60 seconds.
"""

from django.db import migrations

TASK_NAME = "Dispatch Message Notifications"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for dispatching pending notifications."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=60,
        period="seconds",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "notifications.tasks.dispatch_message_notifications",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Sends push notifications for new chat messages, batched per "
                "receiver. Failed rows are retried on later runs up to 3 attempts."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("notifications", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
