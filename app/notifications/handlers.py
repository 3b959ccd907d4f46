"""
Signal handlers queueing push notifications for chat messages.

Related files:
    - services.py: NotificationDispatchService works the queue off
    - apps.py: Handler registration

A PendingMessageNotification is written for the receiver of every new
message, inside the sending transaction, so a rolled back message never
leaves a notification behind.
"""

from __future__ import annotations

import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from chat.models import Message
from notifications.models import PendingMessageNotification

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Message)
def queue_message_notification(sender, instance, created, **kwargs):
    if not created:
        return

    conversation = instance.conversation
    PendingMessageNotification.objects.create(
        message=instance,
        conversation=conversation,
        sender_id=instance.sender_id,
        receiver_id=conversation.other_user_id(instance.sender_id),
    )
    logger.debug(f"Queued push notification for message {instance.id}")
