"""
Async store facade used by ChatSession.

DjangoChatStore wraps the chat services with ``database_sync_to_async``
and converts their ServiceResult failures into exceptions (NotFoundError,
PermissionDeniedError, otherwise ChatStoreError), so the session
controller deals in plain rows and exceptions.

Rows:
    message: see chat.realtime.message_to_row
    conversation: ConversationSummarySerializer output
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from channels.db import database_sync_to_async

from chat.realtime import message_to_row
from chat.serializers import ConversationSummarySerializer
from chat.services import (
    ConversationService,
    MessageService,
    VisibilityService,
    get_user,
)
from core.exceptions import BaseApplicationError, NotFoundError, PermissionDeniedError
from core.services import ServiceResult


class ChatStoreError(BaseApplicationError):
    """A store operation failed; ``error_code`` carries the service code."""

    default_error_code = "STORE_ERROR"


ERROR_CLASSES: dict[str, type[BaseApplicationError]] = {
    "NOT_FOUND": NotFoundError,
    "USER_NOT_FOUND": NotFoundError,
    "NOT_PARTICIPANT": PermissionDeniedError,
}


def _unwrap(result: ServiceResult):
    if not result.success:
        error_class = ERROR_CLASSES.get(result.error_code, ChatStoreError)
        raise error_class(result.error, error_code=result.error_code)
    return result.data


def _require_user(user_id: int):
    user = get_user(user_id)
    if user is None:
        raise NotFoundError("User not found", error_code="USER_NOT_FOUND")
    return user


def _conversation_for(conversation_id: int, user):
    return _unwrap(ConversationService.get_for_participant(conversation_id, user))


class DjangoChatStore:
    """ChatStore backed by the Django ORM through the service layer."""

    @database_sync_to_async
    def list_conversations(self, user_id: int) -> list[dict[str, Any]]:
        user = _require_user(user_id)
        summaries = _unwrap(ConversationService.list_for_user(user))
        return ConversationSummarySerializer(summaries, many=True).data

    @database_sync_to_async
    def get_or_create_conversation(self, user_id: int, other_user_id: int) -> int:
        user = _require_user(user_id)
        other = get_user(other_user_id)
        conversation, _ = _unwrap(ConversationService.get_or_create_direct(user, other))
        return conversation.id

    @database_sync_to_async
    def get_cleared_at(self, user_id: int, conversation_id: int) -> datetime | None:
        user = _require_user(user_id)
        conversation = _conversation_for(conversation_id, user)
        return VisibilityService.get_cleared_at(user, conversation)

    @database_sync_to_async
    def fetch_messages(
        self, conversation_id: int, user_id: int, offset: int, limit: int
    ) -> list[dict[str, Any]]:
        user = _require_user(user_id)
        conversation = _conversation_for(conversation_id, user)
        messages = _unwrap(MessageService.fetch_messages(conversation, user, offset, limit))
        return [message_to_row(m) for m in messages]

    @database_sync_to_async
    def append_message(self, conversation_id: int, sender_id: int, content: str) -> dict[str, Any]:
        sender = _require_user(sender_id)
        conversation = _conversation_for(conversation_id, sender)
        message = _unwrap(MessageService.send_message(conversation, sender, content))
        return message_to_row(message)

    @database_sync_to_async
    def clear_chat(self, user_id: int, conversation_id: int) -> datetime:
        user = _require_user(user_id)
        conversation = _conversation_for(conversation_id, user)
        cleared = _unwrap(VisibilityService.clear_chat(user, conversation))
        return cleared.cleared_at

    @database_sync_to_async
    def delete_chat(self, user_id: int, conversation_id: int) -> None:
        user = _require_user(user_id)
        conversation = _conversation_for(conversation_id, user)
        _unwrap(VisibilityService.delete_chat(user, conversation))

    @database_sync_to_async
    def mark_as_read(self, user_id: int, conversation_id: int) -> None:
        user = _require_user(user_id)
        conversation = _conversation_for(conversation_id, user)
        _unwrap(MessageService.mark_as_read(conversation, user))
