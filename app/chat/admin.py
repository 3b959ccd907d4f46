"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation inspection
- Message moderation
- Per-user clear/delete overlay rows
- Recent chats
"""

from django.contrib import admin

from chat.models import ClearedChat, Conversation, DeletedChat, Message, RecentChat


class MessageInline(admin.TabularInline):
    """Latest messages of a conversation."""

    model = Message
    extra = 0
    fields = ["sender", "content", "created_at"]
    readonly_fields = ["sender", "content", "created_at"]
    ordering = ["-created_at"]
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = [
        "id",
        "user_lower",
        "user_higher",
        "unread_count_lower",
        "unread_count_higher",
        "created_at",
        "last_message_at",
    ]
    list_filter = ["created_at"]
    search_fields = ["user_lower__email", "user_higher__email", "id"]
    readonly_fields = ["created_at", "updated_at", "last_message", "last_message_at"]
    raw_id_fields = ["user_lower", "user_higher"]
    inlines = [MessageInline]
    ordering = ["-last_message_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = ["id", "conversation", "sender", "content_preview", "created_at"]
    list_filter = ["created_at"]
    search_fields = ["content", "sender__email"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["conversation", "sender"]
    ordering = ["-created_at"]

    @admin.display(description="Content Preview")
    def content_preview(self, obj: Message) -> str:
        """Return truncated content for list display."""
        max_length = 50
        if len(obj.content) > max_length:
            return obj.content[:max_length] + "..."
        return obj.content


@admin.register(ClearedChat)
class ClearedChatAdmin(admin.ModelAdmin):
    list_display = ["user", "conversation", "cleared_at"]
    raw_id_fields = ["user", "conversation"]
    ordering = ["-cleared_at"]


@admin.register(DeletedChat)
class DeletedChatAdmin(admin.ModelAdmin):
    list_display = ["user", "conversation", "deleted_at", "reason"]
    search_fields = ["user__email", "reason"]
    raw_id_fields = ["user", "conversation"]
    ordering = ["-deleted_at"]


@admin.register(RecentChat)
class RecentChatAdmin(admin.ModelAdmin):
    list_display = ["user", "other_user", "conversation", "last_interacted_at"]
    raw_id_fields = ["user", "other_user", "conversation"]
    ordering = ["-last_interacted_at"]
