"""
Serializers for notifications API.

Serializers:
    DispatchSummarySerializer: Result of a dispatch pass
    DispatchRequestSerializer: Optional batch size for a manual pass
    PendingMessageNotificationSerializer: A queued push as seen by its receiver
"""

from rest_framework import serializers

from notifications.constants import DISPATCH_CONFIG
from notifications.models import PendingMessageNotification


class DispatchSummarySerializer(serializers.Serializer):
    processed = serializers.IntegerField()
    success = serializers.IntegerField()
    failed = serializers.IntegerField()


class DispatchRequestSerializer(serializers.Serializer):
    batch_size = serializers.IntegerField(
        min_value=1,
        max_value=DISPATCH_CONFIG.BATCH_SIZE,
        default=DISPATCH_CONFIG.BATCH_SIZE,
    )


class PendingMessageNotificationSerializer(serializers.ModelSerializer):
    is_dead_lettered = serializers.BooleanField(read_only=True)

    class Meta:
        model = PendingMessageNotification
        fields = [
            "id",
            "message",
            "conversation",
            "sender",
            "delivered",
            "delivery_attempts",
            "is_dead_lettered",
            "error_message",
            "last_attempt_at",
            "created_at",
        ]
        read_only_fields = fields
