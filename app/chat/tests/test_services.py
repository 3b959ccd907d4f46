"""
Tests for chat service layer business logic.

Test Organization:
    - Each service method has its own test class
    - Tests use descriptive names following: test_<scenario>_<expected_outcome>

Testing Philosophy:
    Tests focus on observable behavior:
    - ServiceResult success/failure states and error codes
    - Database state changes
    - What each participant sees after clear/delete
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.db.models.query import QuerySet
from freezegun import freeze_time

from authentication.tests.factories import UserFactory
from chat.models import ClearedChat, Conversation, DeletedChat, Message, RecentChat
from chat.services import (
    ConversationService,
    MessageService,
    RecentChatService,
    VisibilityService,
    get_user,
)
from chat.tests.factories import ClearedChatFactory, ConversationFactory, DeletedChatFactory


def send_many(conversation, sender, count, start="2026-03-01 09:00:00"):
    """Send ``count`` messages one second apart. Returns them oldest first."""
    messages = []
    with freeze_time(start) as frozen:
        for i in range(count):
            messages.append(MessageService.send_message(conversation, sender, f"m{i}").data)
            frozen.tick(timedelta(seconds=1))
    return messages


# =============================================================================
# TestConversationServiceGetOrCreateDirect
# =============================================================================


class TestConversationServiceGetOrCreateDirect:
    """
    Verifies:
    - First contact creates the conversation
    - Later calls, in either argument order, return the same row
    - Self and missing users are rejected
    """

    def test_creates_on_first_contact(self, alice, bob):
        result = ConversationService.get_or_create_direct(alice, bob)

        assert result.success is True
        conversation, created = result.data
        assert created is True
        assert set(conversation.participant_ids) == {alice.id, bob.id}

    def test_argument_order_does_not_matter(self, alice, bob):
        """
        Why it matters: both users opening the chat at once must land in
        the same conversation.
        """
        first, _ = ConversationService.get_or_create_direct(alice, bob).data
        second, created = ConversationService.get_or_create_direct(bob, alice).data

        assert created is False
        assert first.id == second.id
        assert Conversation.objects.count() == 1

    @pytest.mark.django_db(transaction=True)
    def test_concurrent_first_contact_reads_winner(self, alice, bob):
        """
        The other side's row lands between our lookup and our insert; the
        insert hits the unique pair constraint and the winner is read back.
        """
        lower, higher = Conversation.canonical_pair(alice, bob)
        real_get = QuerySet.get
        raced = []

        def get_after_other_side_inserts(queryset, *args, **kwargs):
            if queryset.model is Conversation and not raced:
                raced.append(Conversation.objects.create(user_lower=lower, user_higher=higher))
                raise Conversation.DoesNotExist
            return real_get(queryset, *args, **kwargs)

        with patch.object(QuerySet, "get", autospec=True, side_effect=get_after_other_side_inserts):
            result = ConversationService.get_or_create_direct(bob, alice)

        assert result.success is True
        conversation, created = result.data
        assert created is False
        assert conversation.id == raced[0].id

        again, _ = ConversationService.get_or_create_direct(alice, bob).data
        assert again.id == conversation.id
        assert Conversation.objects.count() == 1

    def test_self_conversation_rejected(self, alice):
        result = ConversationService.get_or_create_direct(alice, alice)

        assert result.success is False
        assert result.error_code == "SELF_CONVERSATION"

    def test_missing_user_rejected(self, alice):
        result = ConversationService.get_or_create_direct(alice, None)

        assert result.success is False
        assert result.error_code == "USER_NOT_FOUND"

    def test_inactive_user_rejected(self, alice):
        inactive = UserFactory(is_active=False)

        result = ConversationService.get_or_create_direct(alice, inactive)

        assert result.error_code == "USER_NOT_FOUND"


# =============================================================================
# TestConversationServiceGetForParticipant
# =============================================================================


class TestConversationServiceGetForParticipant:
    def test_participant_gets_conversation(self, conversation, bob):
        result = ConversationService.get_for_participant(conversation.id, bob)

        assert result.success is True
        assert result.data == conversation

    def test_outsider_rejected(self, conversation, outsider):
        result = ConversationService.get_for_participant(conversation.id, outsider)

        assert result.error_code == "NOT_PARTICIPANT"

    def test_unknown_id_not_found(self, alice):
        result = ConversationService.get_for_participant(999999, alice)

        assert result.error_code == "NOT_FOUND"


# =============================================================================
# TestConversationServiceListForUser
# =============================================================================


class TestConversationServiceListForUser:
    """
    Verifies:
    - Most recently active conversation first
    - Deleted chats are hidden for the deleting user only
    - Preview respects the user's clear cutoff
    - Database errors fail soft
    """

    def test_orders_by_latest_activity(self, alice, bob, outsider):
        older = ConversationFactory(user_lower=alice, user_higher=bob)
        newer = ConversationFactory(user_lower=alice, user_higher=outsider)
        send_many(older, alice, 1, start="2026-03-01 09:00:00")
        send_many(newer, alice, 1, start="2026-03-01 10:00:00")

        summaries = ConversationService.list_for_user(alice).data

        assert [s.conversation_id for s in summaries] == [newer.id, older.id]

    def test_summary_describes_other_user(self, conversation, alice, bob):
        send_many(conversation, bob, 2)

        summary = ConversationService.list_for_user(alice).data[0]

        assert summary.other_user_id == bob.id
        assert summary.other_user_name == "Bob Nkemelu"
        assert summary.other_user_university == "Sorbonne"
        assert summary.last_message == "m1"
        assert summary.last_message_sender_id == bob.id
        assert summary.unread_count == 2

    def test_preview_truncated(self, conversation, alice, bob):
        MessageService.send_message(conversation, bob, "x" * 250)

        summary = ConversationService.list_for_user(alice).data[0]

        assert len(summary.last_message) == 100

    def test_deleted_chat_hidden_for_deleter_only(self, conversation, alice, bob):
        send_many(conversation, alice, 1)
        VisibilityService.delete_chat(alice, conversation)

        assert ConversationService.list_for_user(alice).data == []
        assert len(ConversationService.list_for_user(bob).data) == 1

    def test_preview_hidden_after_clear(self, conversation, alice, bob):
        send_many(conversation, bob, 1, start="2026-03-01 09:00:00")
        with freeze_time("2026-03-01 09:30:00"):
            VisibilityService.clear_chat(alice, conversation)

        summary = ConversationService.list_for_user(alice).data[0]

        assert summary.last_message is None
        assert ConversationService.list_for_user(bob).data[0].last_message == "m0"

    def test_database_error_fails_soft(self, alice):
        with patch.object(DeletedChat.objects, "filter", side_effect=DatabaseError("down")):
            result = ConversationService.list_for_user(alice)

        assert result.success is False
        assert result.error_code == "STORE_UNAVAILABLE"


# =============================================================================
# TestMessageServiceSendMessage
# =============================================================================


class TestMessageServiceSendMessage:
    """
    Verifies:
    - Validation happens before any write
    - Conversation metadata and receiver's unread counter are updated
    - A new message brings a deleted chat back for both users
    """

    def test_sends_trimmed_content(self, conversation, alice):
        result = MessageService.send_message(conversation, alice, "  hello  ")

        assert result.success is True
        assert result.data.content == "hello"
        assert result.data.sender == alice

    def test_updates_last_message_and_receiver_unread(self, conversation, alice, bob):
        message = MessageService.send_message(conversation, alice, "hi").data

        conversation.refresh_from_db()
        assert conversation.last_message == message
        assert conversation.last_message_at == message.created_at
        assert conversation.unread_count_for(bob.id) == 1
        assert conversation.unread_count_for(alice.id) == 0

    def test_empty_content_rejected_without_write(self, conversation, alice):
        """
        Why it matters: a rejected send must not leave a message or a
        pending notification behind.
        """
        result = MessageService.send_message(conversation, alice, "   ")

        assert result.error_code == "EMPTY_CONTENT"
        assert Message.objects.count() == 0

    def test_overlong_content_rejected(self, conversation, alice):
        result = MessageService.send_message(conversation, alice, "x" * 5001)

        assert result.error_code == "CONTENT_TOO_LONG"
        assert Message.objects.count() == 0

    def test_outsider_cannot_send(self, conversation, outsider):
        result = MessageService.send_message(conversation, outsider, "hi")

        assert result.error_code == "NOT_PARTICIPANT"

    def test_new_message_restores_deleted_chat(self, conversation, alice, bob):
        DeletedChatFactory(conversation=conversation, user=alice)
        DeletedChatFactory(conversation=conversation, user=bob)

        MessageService.send_message(conversation, bob, "are you there?")

        assert not DeletedChat.objects.filter(conversation=conversation).exists()

    def test_recent_chats_touched_for_both(self, conversation, alice, bob):
        MessageService.send_message(conversation, alice, "hi")

        assert RecentChat.objects.filter(user=alice, other_user=bob).exists()
        assert RecentChat.objects.filter(user=bob, other_user=alice).exists()


# =============================================================================
# TestMessageServiceFetchMessages
# =============================================================================


class TestMessageServiceFetchMessages:
    """
    Verifies:
    - Offset 0 returns the newest page in chronological order
    - Later offsets walk back through history
    - The viewer's clear cutoff applies before paginating
    """

    def test_first_page_is_newest_oldest_first(self, conversation, alice):
        send_many(conversation, alice, 20)

        page = MessageService.fetch_messages(conversation, alice, offset=0, limit=15).data

        assert [m.content for m in page] == [f"m{i}" for i in range(5, 20)]

    def test_offset_returns_older_page(self, conversation, alice):
        send_many(conversation, alice, 20)

        page = MessageService.fetch_messages(conversation, alice, offset=15, limit=15).data

        assert [m.content for m in page] == [f"m{i}" for i in range(5)]

    def test_offset_past_end_is_empty(self, conversation, alice):
        send_many(conversation, alice, 3)

        page = MessageService.fetch_messages(conversation, alice, offset=10, limit=15).data

        assert page == []

    def test_default_limit_from_settings(self, conversation, alice, settings):
        settings.CHAT_PAGE_SIZE = 4
        send_many(conversation, alice, 6)

        page = MessageService.fetch_messages(conversation, alice).data

        assert len(page) == 4

    def test_cleared_messages_hidden_for_clearer_only(self, conversation, alice, bob):
        send_many(conversation, alice, 3, start="2026-03-01 09:00:00")
        ClearedChatFactory(conversation=conversation, user=bob, cleared_at=Message.objects.last().created_at)
        send_many(conversation, alice, 2, start="2026-03-01 10:00:00")

        bob_page = MessageService.fetch_messages(conversation, bob, limit=15).data
        alice_page = MessageService.fetch_messages(conversation, alice, limit=15).data

        assert [m.content for m in bob_page] == ["m0", "m1"]
        assert len(bob_page) == 2
        assert len(alice_page) == 5

    def test_invalid_pagination(self, conversation, alice):
        assert MessageService.fetch_messages(conversation, alice, offset=-1).error_code == "INVALID_PAGINATION"
        assert MessageService.fetch_messages(conversation, alice, limit=0).error_code == "INVALID_PAGINATION"
        assert MessageService.fetch_messages(conversation, alice, limit=101).error_code == "INVALID_PAGINATION"

    def test_outsider_cannot_read(self, conversation, outsider):
        result = MessageService.fetch_messages(conversation, outsider)

        assert result.error_code == "NOT_PARTICIPANT"


# =============================================================================
# TestMessageServiceUnread
# =============================================================================


class TestMessageServiceUnread:
    def test_mark_as_read_returns_previous_count(self, conversation, alice, bob):
        send_many(conversation, alice, 3)

        result = MessageService.mark_as_read(conversation, bob)

        assert result.data == 3
        conversation.refresh_from_db()
        assert conversation.unread_count_for(bob.id) == 0

    def test_total_unread_skips_deleted_chats(self, alice, bob, outsider):
        first = ConversationFactory(user_lower=alice, user_higher=bob)
        second = ConversationFactory(user_lower=alice, user_higher=outsider)
        send_many(first, bob, 2)
        send_many(second, outsider, 3)
        DeletedChatFactory(conversation=second, user=alice)

        assert MessageService.get_unread_count(alice) == 2


# =============================================================================
# TestVisibilityService
# =============================================================================


class TestVisibilityService:
    """
    Verifies:
    - clear_chat records a per-user cutoff and resets unread
    - delete_chat hides the chat and drops the user's recent entry
    - Neither touches the other participant
    """

    def test_clear_sets_cutoff(self, conversation, alice):
        with freeze_time("2026-03-02 12:00:00"):
            result = VisibilityService.clear_chat(alice, conversation)

        assert result.success is True
        assert VisibilityService.get_cleared_at(alice, conversation) == result.data.cleared_at

    def test_clear_again_moves_cutoff(self, conversation, alice):
        with freeze_time("2026-03-02 12:00:00"):
            VisibilityService.clear_chat(alice, conversation)
        with freeze_time("2026-03-03 12:00:00"):
            VisibilityService.clear_chat(alice, conversation)

        assert ClearedChat.objects.filter(user=alice).count() == 1
        assert VisibilityService.get_cleared_at(alice, conversation).day == 3

    def test_clear_resets_unread(self, conversation, alice, bob):
        send_many(conversation, bob, 2)

        VisibilityService.clear_chat(alice, conversation)

        conversation.refresh_from_db()
        assert conversation.unread_count_for(alice.id) == 0

    def test_other_user_has_no_cutoff(self, conversation, alice, bob):
        VisibilityService.clear_chat(alice, conversation)

        assert VisibilityService.get_cleared_at(bob, conversation) is None

    def test_delete_removes_own_recent_entry_only(self, conversation, alice, bob):
        MessageService.send_message(conversation, alice, "hi")

        result = VisibilityService.delete_chat(alice, conversation, reason="spam")

        assert result.success is True
        assert result.data.reason == "spam"
        assert not RecentChat.objects.filter(user=alice).exists()
        assert RecentChat.objects.filter(user=bob, other_user=alice).exists()

    def test_delete_with_wrong_other_user(self, conversation, alice, outsider):
        result = VisibilityService.delete_chat(alice, conversation, other_user=outsider)

        assert result.error_code == "INVALID_OTHER_USER"

    def test_outsider_cannot_clear_or_delete(self, conversation, outsider):
        assert VisibilityService.clear_chat(outsider, conversation).error_code == "NOT_PARTICIPANT"
        assert VisibilityService.delete_chat(outsider, conversation).error_code == "NOT_PARTICIPANT"


# =============================================================================
# TestRecentChatService
# =============================================================================


class TestRecentChatService:
    def test_newest_first(self, alice, bob, outsider):
        first = ConversationFactory(user_lower=alice, user_higher=bob)
        second = ConversationFactory(user_lower=alice, user_higher=outsider)
        send_many(first, alice, 1, start="2026-03-01 09:00:00")
        send_many(second, alice, 1, start="2026-03-01 10:00:00")

        recent = RecentChatService.list_for_user(alice)

        assert [r.other_user_id for r in recent] == [outsider.id, bob.id]


def test_get_user_ignores_inactive(db):
    inactive = UserFactory(is_active=False)

    assert get_user(inactive.id) is None
