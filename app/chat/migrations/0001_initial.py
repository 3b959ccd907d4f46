import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _timestamps():
    return [
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
    ]


def _id():
    return (
        "id",
        models.BigAutoField(
            auto_created=True,
            primary_key=True,
            serialize=False,
            verbose_name="ID",
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Conversation",
            fields=[
                _id(),
                *_timestamps(),
                (
                    "last_message_at",
                    models.DateTimeField(
                        blank=True,
                        db_index=True,
                        help_text="Timestamp of the most recent message",
                        null=True,
                    ),
                ),
                (
                    "unread_count_lower",
                    models.PositiveIntegerField(
                        default=0, help_text="Unread messages for user_lower"
                    ),
                ),
                (
                    "unread_count_higher",
                    models.PositiveIntegerField(
                        default=0, help_text="Unread messages for user_higher"
                    ),
                ),
                (
                    "user_lower",
                    models.ForeignKey(
                        help_text="Participant with the lower user id",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="conversations_as_lower",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user_higher",
                    models.ForeignKey(
                        help_text="Participant with the higher user id",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="conversations_as_higher",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_conversation",
                "ordering": ["-last_message_at", "-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                _id(),
                *_timestamps(),
                (
                    "content",
                    models.TextField(help_text="Message text (non-empty after trimming)"),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation this message belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="chat.conversation",
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        help_text="User who sent the message",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sent_messages",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_message",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["conversation", "created_at", "id"],
                        name="chat_msg_conv_created_idx",
                    )
                ],
            },
        ),
        migrations.AddField(
            model_name="conversation",
            name="last_message",
            field=models.ForeignKey(
                blank=True,
                help_text="Most recent message (list preview)",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to="chat.message",
            ),
        ),
        migrations.AddConstraint(
            model_name="conversation",
            constraint=models.UniqueConstraint(
                fields=("user_lower", "user_higher"),
                name="unique_conversation_pair",
            ),
        ),
        migrations.AddConstraint(
            model_name="conversation",
            constraint=models.CheckConstraint(
                condition=models.Q(("user_lower_id__lt", models.F("user_higher_id"))),
                name="conversation_user_lower_less_than_higher",
            ),
        ),
        migrations.CreateModel(
            name="ClearedChat",
            fields=[
                _id(),
                *_timestamps(),
                (
                    "cleared_at",
                    models.DateTimeField(
                        help_text="Messages at or before this instant are hidden for the user"
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation that was cleared",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="cleared_by",
                        to="chat.conversation",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User who cleared the chat",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="cleared_chats",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_cleared_chat",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "conversation"),
                        name="unique_cleared_chat_per_user",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="DeletedChat",
            fields=[
                _id(),
                *_timestamps(),
                (
                    "deleted_at",
                    models.DateTimeField(help_text="When the user deleted the chat"),
                ),
                (
                    "reason",
                    models.CharField(
                        blank=True,
                        help_text="Optional reason given by the user",
                        max_length=200,
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation hidden from the user's list",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="deleted_by",
                        to="chat.conversation",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User who deleted the chat",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="deleted_chats",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_deleted_chat",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "conversation"),
                        name="unique_deleted_chat_per_user",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="RecentChat",
            fields=[
                _id(),
                *_timestamps(),
                (
                    "last_interacted_at",
                    models.DateTimeField(
                        db_index=True,
                        help_text="Time of the latest message between the two users",
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation between the two users",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="recent_entries",
                        to="chat.conversation",
                    ),
                ),
                (
                    "other_user",
                    models.ForeignKey(
                        help_text="The person the owner chatted with",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Owner of this listing entry",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="recent_chats",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "chat_recent_chat",
                "ordering": ["-last_interacted_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "other_user"),
                        name="unique_recent_chat_pair",
                    )
                ],
            },
        ),
    ]
