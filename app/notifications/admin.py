"""
Django admin configuration for notification models.

Provides:
- Pending notification inspection with delivered/dead-letter filters
- A bulk action to reset attempts on dead-lettered rows
"""

from django.contrib import admin

from notifications.models import PendingMessageNotification


@admin.register(PendingMessageNotification)
class PendingMessageNotificationAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "receiver",
        "sender",
        "conversation",
        "delivered",
        "delivery_attempts",
        "last_attempt_at",
        "created_at",
    ]
    list_filter = ["delivered", "delivery_attempts", "created_at"]
    search_fields = ["receiver__email", "sender__email", "error_message"]
    readonly_fields = [
        "message",
        "conversation",
        "sender",
        "receiver",
        "created_at",
        "updated_at",
        "last_attempt_at",
        "delivered_at",
    ]
    raw_id_fields = ["message", "conversation", "sender", "receiver"]
    ordering = ["-created_at"]
    actions = ["retry_notifications"]

    @admin.action(description="Reset attempts so the next dispatch retries")
    def retry_notifications(self, request, queryset):
        updated = queryset.filter(delivered=False).update(delivery_attempts=0, error_message="")
        self.message_user(request, f"{updated} notification(s) queued for retry.")
