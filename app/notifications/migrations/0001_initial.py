import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("chat", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PendingMessageNotification",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "delivered",
                    models.BooleanField(default=False, help_text="Push sent, or nothing to send to"),
                ),
                (
                    "delivery_attempts",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Failed attempts; retried until 3"
                    ),
                ),
                (
                    "error_message",
                    models.TextField(blank=True, help_text="Last delivery error"),
                ),
                ("last_attempt_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                (
                    "conversation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pending_notifications",
                        to="chat.conversation",
                    ),
                ),
                (
                    "message",
                    models.OneToOneField(
                        help_text="Message to notify about",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pending_notification",
                        to="chat.message",
                    ),
                ),
                (
                    "receiver",
                    models.ForeignKey(
                        help_text="User to push to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="pending_message_notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "notifications_pending_message",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["delivered", "delivery_attempts", "created_at"],
                        name="notif_pending_lookup_idx",
                    )
                ],
            },
        ),
    ]
