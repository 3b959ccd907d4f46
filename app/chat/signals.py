"""
Signal handlers publishing realtime message events.

Events go out on transaction commit so subscribers never see a message
that was rolled back, and they arrive in commit order.

Related files:
    - realtime.py: Event format and buses
    - apps.py: Signal import in ready()
"""

import logging

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from chat.models import Message
from chat.realtime import MessageEventType, build_event, get_event_bus, message_to_row

logger = logging.getLogger(__name__)


def _publish(participant_ids, event):
    try:
        get_event_bus().publish(participant_ids, event)
    except Exception:
        # Runs after commit; must not raise into the writer
        logger.exception(f"Failed to publish realtime {event['event_type']} event")


@receiver(post_save, sender=Message)
def publish_message_saved(sender, instance, created, **kwargs):
    """Publish INSERT for new messages and UPDATE for re-saved ones."""
    conversation = instance.conversation
    participant_ids = list(conversation.participant_ids)
    row = message_to_row(instance)
    if created:
        event = build_event(MessageEventType.INSERT, new=row)
    else:
        event = build_event(MessageEventType.UPDATE, new=row, old={"id": instance.id})

    transaction.on_commit(lambda: _publish(participant_ids, event))


@receiver(post_delete, sender=Message)
def publish_message_deleted(sender, instance, **kwargs):
    """Publish DELETE with the removed row as ``old``."""
    try:
        participant_ids = list(instance.conversation.participant_ids)
    except Message.conversation.RelatedObjectDoesNotExist:
        # Cascade from a deleted conversation; nobody is left to notify
        return
    event = build_event(MessageEventType.DELETE, old=message_to_row(instance))

    transaction.on_commit(lambda: _publish(participant_ids, event))
