"""
Notification models.

PendingMessageNotification is the outbox for chat push notifications.
A row is written in the same transaction as the message and is worked off
by notifications.services.NotificationDispatchService.

State Flow:
    pending (delivered=False, attempts < 3)
        -> delivered (push sent, or receiver has no push token)
        -> pending with attempts + 1 (send failed; retried next pass)
        -> dead-lettered (attempts == 3, no longer fetched)

Usage:
    from notifications.models import PendingMessageNotification

    PendingMessageNotification.objects.pending()[:100]
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from notifications.constants import DISPATCH_CONFIG


class PendingMessageNotificationQuerySet(models.QuerySet):
    def pending(self):
        """Undelivered rows still under the attempt cap, oldest first."""
        return self.filter(
            delivered=False,
            delivery_attempts__lt=DISPATCH_CONFIG.MAX_DELIVERY_ATTEMPTS,
        ).order_by("created_at", "id")

    def dead_lettered(self):
        return self.filter(
            delivered=False,
            delivery_attempts__gte=DISPATCH_CONFIG.MAX_DELIVERY_ATTEMPTS,
        )


class PendingMessageNotification(BaseModel):
    """A chat message whose receiver has not been pushed yet."""

    message = models.OneToOneField(
        "chat.Message",
        on_delete=models.CASCADE,
        related_name="pending_notification",
        help_text="Message to notify about",
    )
    conversation = models.ForeignKey(
        "chat.Conversation",
        on_delete=models.CASCADE,
        related_name="pending_notifications",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )
    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="pending_message_notifications",
        help_text="User to push to",
    )
    delivered = models.BooleanField(
        default=False,
        help_text="Push sent, or nothing to send to",
    )
    delivery_attempts = models.PositiveSmallIntegerField(
        default=0,
        help_text=f"Failed attempts; retried until {DISPATCH_CONFIG.MAX_DELIVERY_ATTEMPTS}",
    )
    error_message = models.TextField(
        blank=True,
        help_text="Last delivery error",
    )
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    objects = PendingMessageNotificationQuerySet.as_manager()

    class Meta:
        db_table = "notifications_pending_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["delivered", "delivery_attempts", "created_at"],
                name="notif_pending_lookup_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"PendingMessageNotification(message={self.message_id}, receiver={self.receiver_id})"

    @property
    def is_dead_lettered(self) -> bool:
        return not self.delivered and self.delivery_attempts >= DISPATCH_CONFIG.MAX_DELIVERY_ATTEMPTS
