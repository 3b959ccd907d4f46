"""
Chat services for conversation and message management.

This module provides the business logic layer for the chat system:

Services:
    ConversationService: Get-or-create and per-user conversation listing
    MessageService: Sending, history pagination, unread tracking
    VisibilityService: Per-user clear and delete overlay
    RecentChatService: Recent chats convenience listing

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.get_or_create_direct(alice, bob)
    conversation, created = result.data

    result = MessageService.send_message(conversation, alice, "Hello!")
    if result.success:
        message = result.data

    # Oldest-first page of the 15 newest messages visible to bob
    result = MessageService.fetch_messages(conversation, bob, offset=0, limit=15)

Design Decisions:
    - Reads that hit a database error return STORE_UNAVAILABLE failures so
      callers can show an empty state instead of crashing
    - History is queried newest-first and reversed for display
    - A new message removes DeletedChat rows so the chat reappears
    - Push notifications are queued by notifications.handlers on Message
      creation, inside the same transaction
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.db.models import F, Q, Sum
from django.utils import timezone

from chat.constants import MESSAGE_CONFIG
from chat.models import ClearedChat, Conversation, DeletedChat, Message, RecentChat
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from authentication.models import User


def _profile_of(user):
    from authentication.models import Profile

    try:
        return user.profile
    except Profile.DoesNotExist:
        return None


def _display_name(user) -> str:
    from authentication.models import DEFAULT_DISPLAY_NAME

    profile = _profile_of(user)
    return profile.display_name if profile else DEFAULT_DISPLAY_NAME


@dataclass
class ConversationSummary:
    """One row of a user's conversation list."""

    conversation_id: int
    other_user_id: int
    other_user_name: str
    other_user_avatar: str
    other_user_university: str
    last_message: str | None
    last_message_sender_id: int | None
    last_message_at: datetime | None
    unread_count: int
    last_activity: datetime


# =============================================================================
# ConversationService
# =============================================================================


class ConversationService(BaseService):
    """Conversation lookup, creation and listing."""

    @classmethod
    def get_or_create_direct(
        cls, user_a: User, user_b: User
    ) -> ServiceResult[tuple[Conversation, bool]]:
        """
        Return the conversation between two users, creating it if needed.

        Argument order does not matter. The unique constraint on the
        canonical pair makes concurrent first contact from both sides
        resolve to a single row: the loser of the insert race reads the
        winner's row back.

        Returns:
            ServiceResult with (conversation, created)
        """
        if user_a is None or user_b is None:
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        if user_a.pk == user_b.pk:
            return ServiceResult.failure(
                "Cannot start a conversation with yourself",
                error_code="SELF_CONVERSATION",
            )

        if not user_a.is_active or not user_b.is_active:
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        lower, higher = Conversation.canonical_pair(user_a, user_b)
        with cls.atomic():
            conversation, created = Conversation.objects.get_or_create(
                user_lower=lower,
                user_higher=higher,
            )

        if created:
            cls.get_logger().info(
                f"Created conversation {conversation.id} between users {lower.id} and {higher.id}"
            )
        return ServiceResult.success((conversation, created))

    @classmethod
    def get_for_participant(cls, conversation_id: int, user: User) -> ServiceResult[Conversation]:
        """Load a conversation the user takes part in."""
        try:
            conversation = Conversation.objects.select_related(
                "user_lower", "user_higher"
            ).get(pk=conversation_id)
        except Conversation.DoesNotExist:
            return ServiceResult.failure(
                "Conversation not found", error_code="NOT_FOUND"
            )

        if not conversation.has_participant(user.id):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )
        return ServiceResult.success(conversation)

    @classmethod
    def list_for_user(cls, user: User) -> ServiceResult[list[ConversationSummary]]:
        """
        Conversations involving ``user``, most recently active first.

        Conversations the user deleted are left out. The last message
        preview is hidden when it falls at or before the user's clear
        cutoff.
        """
        try:
            deleted_ids = DeletedChat.objects.filter(user=user).values("conversation_id")
            conversations = list(
                Conversation.objects.filter(Q(user_lower=user) | Q(user_higher=user))
                .exclude(id__in=deleted_ids)
                .select_related(
                    "user_lower__profile",
                    "user_higher__profile",
                    "last_message",
                )
                .order_by(F("last_message_at").desc(nulls_last=True), "-created_at")
            )
            cutoffs = dict(
                ClearedChat.objects.filter(user=user).values_list(
                    "conversation_id", "cleared_at"
                )
            )
        except DatabaseError as exc:
            return cls.handle_exception(
                exc,
                f"Listing conversations for user {user.id}",
                error_code="STORE_UNAVAILABLE",
            )

        return ServiceResult.success(
            [cls._summarize(c, user, cutoffs.get(c.id)) for c in conversations]
        )

    @classmethod
    def _summarize(
        cls, conversation: Conversation, user: User, cleared_at: datetime | None
    ) -> ConversationSummary:
        other = conversation.other_user(user.id)
        profile = _profile_of(other)
        last = conversation.last_message
        if last is not None and cleared_at is not None and last.created_at <= cleared_at:
            last = None

        return ConversationSummary(
            conversation_id=conversation.id,
            other_user_id=other.id,
            other_user_name=_display_name(other),
            other_user_avatar=profile.avatar_url if profile else "",
            other_user_university=profile.university if profile else "",
            last_message=last.content[: MESSAGE_CONFIG.PREVIEW_LENGTH] if last else None,
            last_message_sender_id=last.sender_id if last else None,
            last_message_at=last.created_at if last else None,
            unread_count=conversation.unread_count_for(user.id),
            last_activity=conversation.last_message_at or conversation.created_at,
        )


# =============================================================================
# MessageService
# =============================================================================


class MessageService(BaseService):
    """Message sending, history and unread counters."""

    @classmethod
    def send_message(
        cls, conversation: Conversation, sender: User, content: str
    ) -> ServiceResult[Message]:
        """
        Append a message to the conversation.

        Validation runs before any write, so rejected content leaves no
        message and no pending notification behind.

        Side effects (same transaction):
            - conversation last_message / last_message_at updated
            - receiver's unread counter incremented
            - DeletedChat rows for the conversation removed
            - both users' RecentChat rows refreshed
            - PendingMessageNotification queued (notifications.handlers)
        """
        if not conversation.has_participant(sender.id):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        content = (content or "").strip()
        if not content:
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code="EMPTY_CONTENT",
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message exceeds {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )

        receiver_id = conversation.other_user_id(sender.id)
        unread_field = conversation.unread_field_for(receiver_id)

        with cls.atomic():
            message = Message.objects.create(
                conversation=conversation,
                sender=sender,
                content=content,
            )
            Conversation.objects.filter(pk=conversation.pk).update(
                last_message=message,
                last_message_at=message.created_at,
                **{unread_field: F(unread_field) + 1},
            )
            unhidden = DeletedChat.objects.filter(conversation=conversation).delete()[0]
            RecentChatService.touch(conversation, message.created_at)

        conversation.refresh_from_db(
            fields=["last_message", "last_message_at", "unread_count_lower", "unread_count_higher"]
        )

        if unhidden:
            cls.get_logger().info(
                f"Conversation {conversation.id} un-hidden by new message {message.id}"
            )
        cls.get_logger().info(
            f"Message {message.id} sent in conversation {conversation.id} by user {sender.id}"
        )
        return ServiceResult.success(message)

    @classmethod
    def fetch_messages(
        cls,
        conversation: Conversation,
        user: User,
        offset: int = 0,
        limit: int | None = None,
    ) -> ServiceResult[list[Message]]:
        """
        One page of history as seen by ``user``, oldest first.

        The user's clear cutoff is applied before paginating. Pages are
        cut from the newest end: offset 0 is the latest ``limit``
        messages, and loading older history passes the number of messages
        already loaded as the offset.
        """
        if limit is None:
            limit = getattr(settings, "CHAT_PAGE_SIZE", MESSAGE_CONFIG.DEFAULT_PAGE_SIZE)

        if offset < 0 or limit < 1 or limit > MESSAGE_CONFIG.MAX_PAGE_SIZE:
            return ServiceResult.failure(
                f"offset must be >= 0 and limit between 1 and {MESSAGE_CONFIG.MAX_PAGE_SIZE}",
                error_code="INVALID_PAGINATION",
            )

        if not conversation.has_participant(user.id):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        try:
            queryset = Message.objects.filter(conversation=conversation)
            cleared_at = VisibilityService.get_cleared_at(user, conversation)
            if cleared_at is not None:
                queryset = queryset.filter(created_at__gt=cleared_at)

            page = list(queryset.order_by("-created_at", "-id")[offset : offset + limit])
        except DatabaseError as exc:
            return cls.handle_exception(
                exc,
                f"Fetching messages for conversation {conversation.id}",
                error_code="STORE_UNAVAILABLE",
            )

        page.reverse()
        return ServiceResult.success(page)

    @classmethod
    def mark_as_read(cls, conversation: Conversation, user: User) -> ServiceResult[int]:
        """Reset the user's unread counter. Returns the previous count."""
        if not conversation.has_participant(user.id):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        field = conversation.unread_field_for(user.id)
        conversation.refresh_from_db(fields=[field])
        previous = getattr(conversation, field)
        if previous:
            Conversation.objects.filter(pk=conversation.pk).update(**{field: 0})
            setattr(conversation, field, 0)
        return ServiceResult.success(previous)

    @classmethod
    def get_unread_count(cls, user: User) -> int:
        """Total unread messages across conversations the user has not deleted."""
        deleted_ids = DeletedChat.objects.filter(user=user).values("conversation_id")
        totals = (
            Conversation.objects.filter(Q(user_lower=user) | Q(user_higher=user))
            .exclude(id__in=deleted_ids)
            .aggregate(
                lower=Sum("unread_count_lower", filter=Q(user_lower=user)),
                higher=Sum("unread_count_higher", filter=Q(user_higher=user)),
            )
        )
        return (totals["lower"] or 0) + (totals["higher"] or 0)


# =============================================================================
# VisibilityService
# =============================================================================


class VisibilityService(BaseService):
    """
    Per-user overlay on shared history.

    Clearing and deleting only ever write the acting user's own rows; the
    other participant's view and the messages themselves are untouched.
    """

    @classmethod
    def get_cleared_at(cls, user: User, conversation: Conversation) -> datetime | None:
        return (
            ClearedChat.objects.filter(user=user, conversation=conversation)
            .values_list("cleared_at", flat=True)
            .first()
        )

    @classmethod
    def clear_chat(cls, user: User, conversation: Conversation) -> ServiceResult[ClearedChat]:
        """Hide every message up to now from ``user``. Also resets their unread counter."""
        if not conversation.has_participant(user.id):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        with cls.atomic():
            cleared, _ = ClearedChat.objects.update_or_create(
                user=user,
                conversation=conversation,
                defaults={"cleared_at": timezone.now()},
            )
            field = conversation.unread_field_for(user.id)
            Conversation.objects.filter(pk=conversation.pk).update(**{field: 0})

        cls.get_logger().info(
            f"User {user.id} cleared conversation {conversation.id} at {cleared.cleared_at.isoformat()}"
        )
        return ServiceResult.success(cleared)

    @classmethod
    def delete_chat(
        cls,
        user: User,
        conversation: Conversation,
        other_user: User | None = None,
        reason: str = "",
    ) -> ServiceResult[DeletedChat]:
        """
        Hide the conversation from ``user``'s list.

        Also drops ``user``'s recent-chat entry for the other participant.
        The other participant's list and recent chats are untouched.
        """
        if not conversation.has_participant(user.id):
            return ServiceResult.failure(
                "You are not a participant in this conversation",
                error_code="NOT_PARTICIPANT",
            )

        other_user_id = other_user.id if other_user is not None else conversation.other_user_id(user.id)
        if not conversation.has_participant(other_user_id) or other_user_id == user.id:
            return ServiceResult.failure(
                "Other user is not part of this conversation",
                error_code="INVALID_OTHER_USER",
            )

        with cls.atomic():
            deleted, _ = DeletedChat.objects.update_or_create(
                user=user,
                conversation=conversation,
                defaults={"deleted_at": timezone.now(), "reason": reason[:200]},
            )
            RecentChat.objects.filter(user=user, other_user_id=other_user_id).delete()

        cls.get_logger().info(f"User {user.id} deleted conversation {conversation.id}")
        return ServiceResult.success(deleted)


# =============================================================================
# RecentChatService
# =============================================================================


class RecentChatService(BaseService):
    """Recent chats listing kept alongside the conversation list."""

    @classmethod
    def touch(cls, conversation: Conversation, at: datetime) -> None:
        """Record an interaction for both participants."""
        for user_id, other_id in (
            (conversation.user_lower_id, conversation.user_higher_id),
            (conversation.user_higher_id, conversation.user_lower_id),
        ):
            RecentChat.objects.update_or_create(
                user_id=user_id,
                other_user_id=other_id,
                defaults={"conversation": conversation, "last_interacted_at": at},
            )

    @classmethod
    def list_for_user(cls, user: User, limit: int = 20) -> list[RecentChat]:
        return list(
            RecentChat.objects.filter(user=user)
            .select_related("other_user__profile")
            .order_by("-last_interacted_at")[:limit]
        )


def get_user(user_id: int) -> User | None:
    """Active user by id, or None."""
    User = get_user_model()
    return User.objects.filter(pk=user_id, is_active=True).select_related("profile").first()
