"""
Chat system models.

This module defines the data models for two-party messaging:

Models:
    Conversation: Thread between exactly two users (one per unordered pair)
    Message: Immutable text message within a conversation
    ClearedChat: Per-user cutoff hiding older messages from that user only
    DeletedChat: Per-user marker hiding a conversation from that user's list
    RecentChat: Per-user "recently talked to" convenience listing

Design Decisions:
    - The participant pair is stored in canonical order (lower user id first)
      so a unique constraint makes get-or-create race-safe
    - Conversations are never hard-deleted; deletion is a per-user overlay
    - Overlay rows are unique per (user, conversation) and written as upserts
    - Unread counters live on the conversation, one per side of the pair
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from core.models import BaseModel

if TYPE_CHECKING:
    from authentication.models import User


class Conversation(BaseModel):
    """
    A persistent messaging thread between two users.

    Fields:
        user_lower: Participant with the lower user id
        user_higher: Participant with the higher user id
        last_message_at: Time of the latest message (last activity)
        last_message: Latest message, used for list previews
        unread_count_lower: Messages user_lower has not read
        unread_count_higher: Messages user_higher has not read

    Constraints:
        - UniqueConstraint(user_lower, user_higher): one conversation per pair
        - CheckConstraint(user_lower_id < user_higher_id): canonical order

    Usage:
        lower, higher = Conversation.canonical_pair(alice, bob)
        conversation = Conversation.objects.get(user_lower=lower, user_higher=higher)
        conversation.other_user_id(alice.id)  # -> bob.id
    """

    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversations_as_lower",
        help_text="Participant with the lower user id",
    )
    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversations_as_higher",
        help_text="Participant with the higher user id",
    )
    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of the most recent message",
    )
    last_message = models.ForeignKey(
        "chat.Message",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Most recent message (list preview)",
    )
    unread_count_lower = models.PositiveIntegerField(
        default=0,
        help_text="Unread messages for user_lower",
    )
    unread_count_higher = models.PositiveIntegerField(
        default=0,
        help_text="Unread messages for user_higher",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-last_message_at", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_conversation_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="conversation_user_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        return f"Conversation {self.pk} ({self.user_lower_id}, {self.user_higher_id})"

    @staticmethod
    def canonical_pair(user_a: User, user_b: User) -> tuple[User, User]:
        """Return the two users ordered by id (lower first)."""
        if user_a.pk < user_b.pk:
            return user_a, user_b
        return user_b, user_a

    @property
    def participant_ids(self) -> tuple[int, int]:
        return (self.user_lower_id, self.user_higher_id)

    def has_participant(self, user_id: int) -> bool:
        return user_id in self.participant_ids

    def other_user_id(self, user_id: int) -> int:
        """Id of the participant that is not ``user_id``."""
        if user_id == self.user_lower_id:
            return self.user_higher_id
        if user_id == self.user_higher_id:
            return self.user_lower_id
        raise ValueError(f"User {user_id} is not part of conversation {self.pk}")

    def other_user(self, user_id: int) -> User:
        if user_id == self.user_lower_id:
            return self.user_higher
        return self.user_lower

    def unread_field_for(self, user_id: int) -> str:
        """Name of the unread counter column belonging to ``user_id``."""
        if user_id == self.user_lower_id:
            return "unread_count_lower"
        if user_id == self.user_higher_id:
            return "unread_count_higher"
        raise ValueError(f"User {user_id} is not part of conversation {self.pk}")

    def unread_count_for(self, user_id: int) -> int:
        return getattr(self, self.unread_field_for(user_id))


class Message(BaseModel):
    """
    A text message. Immutable once created.

    Ordered by (created_at, id) so ties on the timestamp fall back to
    insertion order.
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
        help_text="User who sent the message",
    )
    content = models.TextField(
        help_text="Message text (non-empty after trimming)",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["conversation", "created_at", "id"],
                name="chat_msg_conv_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Message {self.pk} in conversation {self.conversation_id}"


class ClearedChat(BaseModel):
    """
    Per-user clear cutoff.

    Messages created at or before ``cleared_at`` are hidden from ``user``
    in ``conversation``. The other participant is unaffected.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="cleared_chats",
        help_text="User who cleared the chat",
    )
    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="cleared_by",
        help_text="Conversation that was cleared",
    )
    cleared_at = models.DateTimeField(
        help_text="Messages at or before this instant are hidden for the user",
    )

    class Meta:
        db_table = "chat_cleared_chat"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "conversation"],
                name="unique_cleared_chat_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"ClearedChat(user={self.user_id}, conversation={self.conversation_id})"


class DeletedChat(BaseModel):
    """
    Per-user list hide.

    While a row exists the conversation is left out of ``user``'s
    conversation list. The conversation and its messages stay intact.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="deleted_chats",
        help_text="User who deleted the chat",
    )
    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="deleted_by",
        help_text="Conversation hidden from the user's list",
    )
    deleted_at = models.DateTimeField(
        help_text="When the user deleted the chat",
    )
    reason = models.CharField(
        max_length=200,
        blank=True,
        help_text="Optional reason given by the user",
    )

    class Meta:
        db_table = "chat_deleted_chat"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "conversation"],
                name="unique_deleted_chat_per_user",
            ),
        ]

    def __str__(self) -> str:
        return f"DeletedChat(user={self.user_id}, conversation={self.conversation_id})"


class RecentChat(BaseModel):
    """People a user recently messaged with, newest interaction first."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="recent_chats",
        help_text="Owner of this listing entry",
    )
    other_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="The person the owner chatted with",
    )
    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="recent_entries",
        help_text="Conversation between the two users",
    )
    last_interacted_at = models.DateTimeField(
        db_index=True,
        help_text="Time of the latest message between the two users",
    )

    class Meta:
        db_table = "chat_recent_chat"
        ordering = ["-last_interacted_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "other_user"],
                name="unique_recent_chat_pair",
            ),
        ]

    def __str__(self) -> str:
        return f"RecentChat(user={self.user_id}, other_user={self.other_user_id})"
