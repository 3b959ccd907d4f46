"""
Views for notification API.

Endpoints:
    POST /api/v1/notifications/dispatch/ - Run one dispatch pass (staff only)
    GET  /api/v1/notifications/pending/  - Current user's undelivered pushes

The dispatch endpoint runs the same pass as the scheduled Celery task,
synchronously, and returns its summary.
"""

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from notifications.models import PendingMessageNotification
from notifications.serializers import (
    DispatchRequestSerializer,
    DispatchSummarySerializer,
    PendingMessageNotificationSerializer,
)
from notifications.services import NotificationDispatchService


class DispatchView(APIView):
    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(
        operation_id="dispatch_notifications",
        summary="Dispatch pending message notifications",
        tags=["Notifications"],
        request=DispatchRequestSerializer,
        responses={200: DispatchSummarySerializer},
    )
    def post(self, request):
        serializer = DispatchRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        summary = NotificationDispatchService.dispatch_pending(
            batch_size=serializer.validated_data["batch_size"]
        )
        return Response(DispatchSummarySerializer(summary).data)


class PendingNotificationListView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_pending_notifications",
        summary="Undelivered notifications for me",
        tags=["Notifications"],
        responses={200: PendingMessageNotificationSerializer(many=True)},
    )
    def get(self, request):
        rows = PendingMessageNotification.objects.filter(
            receiver=request.user, delivered=False
        ).order_by("created_at", "id")
        return Response(PendingMessageNotificationSerializer(rows, many=True).data)
