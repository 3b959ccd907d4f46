"""
Serializers for chat API.

Serializer Hierarchy:
    ConversationSummarySerializer: Row of a user's conversation list
    ConversationCreateSerializer: Get-or-create input ({user_id})
    ConversationSerializer: Conversation returned by get-or-create
    MessageSerializer: Message as stored
    MessageCreateSerializer: Send input
    MessagePageQuerySerializer: offset/limit query parameters
    DeleteChatSerializer: Optional reason for deleting a chat
    ClearedChatSerializer / DeletedChatSerializer: Overlay acknowledgements
    RecentChatSerializer: Recent chats listing
"""

from __future__ import annotations

from rest_framework import serializers

from chat.constants import MESSAGE_CONFIG
from chat.models import ClearedChat, Conversation, DeletedChat, Message, RecentChat


class ConversationSummarySerializer(serializers.Serializer):
    """Serializes chat.services.ConversationSummary."""

    conversation_id = serializers.IntegerField()
    other_user_id = serializers.IntegerField()
    other_user_name = serializers.CharField()
    other_user_avatar = serializers.CharField(allow_blank=True)
    other_user_university = serializers.CharField(allow_blank=True)
    last_message = serializers.CharField(allow_null=True)
    last_message_sender_id = serializers.IntegerField(allow_null=True)
    last_message_at = serializers.DateTimeField(allow_null=True)
    unread_count = serializers.IntegerField()
    last_activity = serializers.DateTimeField()


class ConversationCreateSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(
        min_value=1,
        help_text="The other participant",
    )


class ConversationSerializer(serializers.ModelSerializer):
    participant_ids = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = ["id", "participant_ids", "last_message_at", "created_at"]
        read_only_fields = fields

    def get_participant_ids(self, obj: Conversation) -> list[int]:
        return list(obj.participant_ids)


class MessageSerializer(serializers.ModelSerializer):
    conversation_id = serializers.IntegerField(read_only=True)
    sender_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Message
        fields = ["id", "conversation_id", "sender_id", "content", "created_at"]
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    """
    Send input.

    Blank content is accepted here and rejected by MessageService so the
    API and the websocket report the same EMPTY_CONTENT error.
    """

    content = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH * 2,
    )


class MessagePageQuerySerializer(serializers.Serializer):
    offset = serializers.IntegerField(min_value=0, default=0)
    limit = serializers.IntegerField(
        min_value=1,
        max_value=MESSAGE_CONFIG.MAX_PAGE_SIZE,
        required=False,
    )


class DeleteChatSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")


class ClearedChatSerializer(serializers.ModelSerializer):
    class Meta:
        model = ClearedChat
        fields = ["conversation", "cleared_at"]
        read_only_fields = fields


class DeletedChatSerializer(serializers.ModelSerializer):
    class Meta:
        model = DeletedChat
        fields = ["conversation", "deleted_at", "reason"]
        read_only_fields = fields


class RecentChatSerializer(serializers.ModelSerializer):
    other_user_name = serializers.SerializerMethodField()
    other_user_avatar = serializers.SerializerMethodField()
    other_user_university = serializers.SerializerMethodField()

    class Meta:
        model = RecentChat
        fields = [
            "other_user",
            "other_user_name",
            "other_user_avatar",
            "other_user_university",
            "conversation",
            "last_interacted_at",
        ]
        read_only_fields = fields

    def get_other_user_name(self, obj: RecentChat) -> str:
        return obj.other_user.profile.display_name

    def get_other_user_avatar(self, obj: RecentChat) -> str:
        return obj.other_user.profile.avatar_url

    def get_other_user_university(self, obj: RecentChat) -> str:
        return obj.other_user.profile.university
