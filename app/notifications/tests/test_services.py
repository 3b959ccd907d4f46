"""
Tests for NotificationDispatchService.

Test Organization:
    - TestDispatchBatching: fetch limits, ordering and grouping
    - TestPayload: single vs batched titles and bodies
    - TestDispatchOutcomes: no token, success, send failure, dead-letter
    - TestReceiverIsolation: one receiver's failure leaves others intact

Testing Philosophy:
    The push channel is mocked; assertions are on row state and the
    returned counts.
"""

from unittest.mock import patch

import pytest
from django.db import DatabaseError

from authentication.models import Profile
from authentication.tests.factories import ProfileFactory, UserFactory
from chat.tests.factories import ConversationFactory
from notifications.models import PendingMessageNotification
from notifications.push import DeliveryError
from notifications.services import (
    DispatchSummary,
    NotificationDispatchService,
    message_preview,
)
from notifications.tests.conftest import EXPO_TOKEN
from notifications.tests.factories import PendingMessageNotificationFactory


def rows_for(user):
    return PendingMessageNotification.objects.filter(receiver=user).order_by("id")


# =============================================================================
# TestDispatchBatching
# =============================================================================


class TestDispatchBatching:
    """
    Verifies:
    - Nothing pending returns zero counts
    - At most batch_size rows are handled per pass, oldest first
    - Rows of the same receiver become one push
    """

    def test_empty_queue(self, db, mock_channel):
        summary = NotificationDispatchService.dispatch_pending()

        assert summary == DispatchSummary(processed=0, success=0, failed=0)
        mock_channel.send.assert_not_called()

    def test_batch_size_limits_rows(self, conversation, send, receiver, mock_channel):
        messages = [send(conversation, f"m{i}") for i in range(5)]

        summary = NotificationDispatchService.dispatch_pending(batch_size=3)

        assert summary.processed == 3
        delivered = list(
            PendingMessageNotification.objects.filter(delivered=True).values_list("message_id", flat=True)
        )
        assert sorted(delivered) == [m.id for m in messages[:3]]

    def test_one_push_per_receiver(self, conversation, send, mock_channel):
        for i in range(4):
            send(conversation, f"m{i}")

        summary = NotificationDispatchService.dispatch_pending()

        assert mock_channel.send.call_count == 1
        assert summary.as_dict() == {"processed": 4, "success": 4, "failed": 0}

    def test_group_by_receiver_keeps_first_seen_order(self, db):
        first = PendingMessageNotificationFactory()
        second = PendingMessageNotificationFactory()
        third = PendingMessageNotificationFactory(
            message__conversation=first.conversation, message__sender=first.sender
        )

        groups = NotificationDispatchService.group_by_receiver([first, second, third])

        assert list(groups) == [first.receiver_id, second.receiver_id]
        assert groups[first.receiver_id] == [first, third]

    def test_capped_rows_not_fetched(self, conversation, send, receiver, mock_channel):
        send(conversation, "old")
        rows_for(receiver).update(delivery_attempts=3)

        summary = NotificationDispatchService.dispatch_pending()

        assert summary.processed == 0
        mock_channel.send.assert_not_called()

    def test_query_failure_propagates(self, db):
        with patch.object(
            PendingMessageNotification.objects, "pending", side_effect=DatabaseError("down")
        ):
            with pytest.raises(DatabaseError):
                NotificationDispatchService.dispatch_pending()


# =============================================================================
# TestPayload
# =============================================================================


class TestPayload:
    """
    Verifies:
    - A single message shows sender name and preview
    - Several messages collapse into a count under the app name
    """

    def test_single_message(self, conversation, send, receiver, mock_channel):
        message = send(conversation, "See you at the library")

        NotificationDispatchService.dispatch_pending()

        token, payload = mock_channel.send.call_args.args
        assert token == EXPO_TOKEN
        assert payload.title == "Sara Lind"
        assert payload.body == "See you at the library"
        assert payload.chat_id == conversation.id
        assert payload.message_id == message.id
        assert payload.to_dict()["data"] == {
            "conversation_id": str(conversation.id),
            "sender_name": "Sara Lind",
        }

    def test_batched_messages(self, conversation, send, mock_channel):
        send(conversation, "one")
        send(conversation, "two")
        last = send(conversation, "three")

        NotificationDispatchService.dispatch_pending()

        _, payload = mock_channel.send.call_args.args
        assert payload.title == "Unigramm"
        assert payload.body == "You have 3 new messages"
        assert payload.message_id == last.id

    def test_app_name_from_settings(self, conversation, send, mock_channel, settings):
        settings.PUSH_APP_NAME = "Campus"
        send(conversation, "one")
        send(conversation, "two")

        NotificationDispatchService.dispatch_pending()

        _, payload = mock_channel.send.call_args.args
        assert payload.title == "Campus"

    def test_preview_truncated(self, conversation, send, mock_channel):
        send(conversation, "y" * 300)

        NotificationDispatchService.dispatch_pending()

        _, payload = mock_channel.send.call_args.args
        assert payload.body == "y" * 100

    def test_sender_without_name_falls_back(self, receiver, mock_channel, send):
        nameless = UserFactory()
        ProfileFactory(user=nameless, first_name="", last_name="", username="")
        conversation = ConversationFactory(user_lower=nameless, user_higher=receiver)
        send(conversation, "hi", from_user=nameless)

        NotificationDispatchService.dispatch_pending()

        _, payload = mock_channel.send.call_args.args
        assert payload.title == "Someone"

    def test_empty_preview_placeholder(self, db):
        class Blank:
            content = ""

        assert message_preview(Blank()) == "New message"


# =============================================================================
# TestDispatchOutcomes
# =============================================================================


class TestDispatchOutcomes:
    """
    Verifies:
    - No token: delivered without sending, counted as processed only
    - Success: delivered and counted
    - DeliveryError: attempts incremented, error recorded
    - Invalid token: token cleared from the profile
    - Other permanent errors: dead-lettered on the first pass
    - Missing profile: dead-lettered
    """

    def test_no_token_marks_delivered_without_send(
        self, silent_conversation, send, silent_receiver, mock_channel
    ):
        send(silent_conversation, "hello")

        summary = NotificationDispatchService.dispatch_pending()

        mock_channel.send.assert_not_called()
        assert summary.as_dict() == {"processed": 1, "success": 0, "failed": 0}
        assert rows_for(silent_receiver).get().delivered is True

    def test_success_marks_delivered(self, conversation, send, receiver, mock_channel):
        send(conversation, "hello")

        NotificationDispatchService.dispatch_pending()

        row = rows_for(receiver).get()
        assert row.delivered is True
        assert row.delivered_at is not None
        mock_channel.get_channel.assert_called_once_with("expo")

    def test_send_failure_increments_attempts(self, conversation, send, receiver, mock_channel):
        mock_channel.send.side_effect = DeliveryError("gateway down", code="provider_error")
        send(conversation, "hello")

        summary = NotificationDispatchService.dispatch_pending()

        row = rows_for(receiver).get()
        assert summary.as_dict() == {"processed": 1, "success": 0, "failed": 1}
        assert row.delivered is False
        assert row.delivery_attempts == 1
        assert "gateway down" in row.error_message
        assert row.last_attempt_at is not None

    def test_retried_until_cap(self, conversation, send, receiver, mock_channel):
        """
        Why it matters: a permanently failing gateway must not be retried
        forever.
        """
        mock_channel.send.side_effect = DeliveryError("gateway down", code="provider_error")
        send(conversation, "hello")

        for _ in range(5):
            NotificationDispatchService.dispatch_pending()

        assert mock_channel.send.call_count == 3
        assert rows_for(receiver).get().delivery_attempts == 3

    def test_invalid_token_cleared(self, conversation, send, receiver, mock_channel):
        mock_channel.send.side_effect = DeliveryError(
            "DeviceNotRegistered", code="invalid_token", is_permanent=True
        )
        send(conversation, "hello")

        NotificationDispatchService.dispatch_pending()

        receiver.profile.refresh_from_db()
        assert receiver.profile.push_token == ""
        assert rows_for(receiver).get().delivery_attempts == 1

        # Next pass finds no token and closes the row out
        summary = NotificationDispatchService.dispatch_pending()
        assert summary.as_dict() == {"processed": 1, "success": 0, "failed": 0}
        assert rows_for(receiver).get().delivered is True

    def test_permanent_error_dead_lettered_on_first_pass(self, conversation, send, receiver, mock_channel):
        """
        Why it matters: an error that cannot clear on retry should not
        spend two more dispatch passes reaching the cap.
        """
        mock_channel.send.side_effect = DeliveryError(
            "Stored web push subscription is not valid JSON",
            code="malformed_subscription",
            is_permanent=True,
        )
        send(conversation, "hello")

        summary = NotificationDispatchService.dispatch_pending()
        NotificationDispatchService.dispatch_pending()

        row = rows_for(receiver).get()
        assert summary.as_dict() == {"processed": 1, "success": 0, "failed": 1}
        assert row.delivery_attempts == 3
        assert row.error_message.startswith("malformed_subscription:")
        assert mock_channel.send.call_count == 1
        receiver.profile.refresh_from_db()
        assert receiver.profile.push_token == EXPO_TOKEN

    def test_unsupported_token_type_dead_lettered(self, conversation, send, receiver):
        Profile.objects.filter(user=receiver).update(push_token_type="pager")
        send(conversation, "hello")

        summary = NotificationDispatchService.dispatch_pending()

        row = rows_for(receiver).get()
        assert summary.failed == 1
        assert row.delivery_attempts == 3
        assert row.error_message.startswith("unsupported_token_type:")

    def test_missing_profile_dead_lettered(self, conversation, send, receiver, mock_channel):
        send(conversation, "hello")
        Profile.objects.filter(user=receiver).delete()

        summary = NotificationDispatchService.dispatch_pending()

        row = rows_for(receiver).get()
        assert summary.as_dict() == {"processed": 1, "success": 0, "failed": 1}
        assert row.delivery_attempts == 3
        assert row.error_message == "Receiver profile not found"
        mock_channel.send.assert_not_called()

    def test_unexpected_error_dead_lettered(self, conversation, send, receiver, mock_channel):
        mock_channel.send.side_effect = RuntimeError("boom")
        send(conversation, "hello")

        summary = NotificationDispatchService.dispatch_pending()

        row = rows_for(receiver).get()
        assert summary.failed == 1
        assert row.delivery_attempts == 3
        assert "boom" in row.error_message


# =============================================================================
# TestReceiverIsolation
# =============================================================================


class TestReceiverIsolation:
    def test_failure_for_one_receiver_does_not_block_others(
        self, conversation, silent_conversation, send, sender, receiver, silent_receiver, mock_channel
    ):
        third = UserFactory()
        ProfileFactory(user=third, push_token="ExponentPushToken[third]", push_token_type="expo")
        third_conversation = ConversationFactory(user_lower=third, user_higher=sender)

        send(conversation, "to receiver")
        send(silent_conversation, "to silent receiver")
        send(third_conversation, "to third")

        def fail_for_receiver(token, payload):
            if token == EXPO_TOKEN:
                raise RuntimeError("boom")

        mock_channel.send.side_effect = fail_for_receiver

        summary = NotificationDispatchService.dispatch_pending()

        assert summary.as_dict() == {"processed": 3, "success": 1, "failed": 1}
        assert rows_for(third).get().delivered is True
        assert rows_for(silent_receiver).get().delivered is True
        assert rows_for(receiver).get().delivery_attempts == 3
