"""
Test configuration and fixtures for notification tests.

This module provides:
- A sender and receivers with and without push tokens
- Conversations and a helper to send messages (which queues notifications)
- A mocked push channel
- Staff and regular API clients

Usage:
    def test_example(conversation, send, mock_channel):
        send(conversation, "hello")
        NotificationDispatchService.dispatch_pending()
        mock_channel.send.assert_called_once()
"""

from unittest.mock import MagicMock, patch

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import ProfileFactory, UserFactory
from chat.services import MessageService
from chat.tests.factories import ConversationFactory

EXPO_TOKEN = "ExponentPushToken[receiver-device]"


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def sender(db):
    user = UserFactory()
    ProfileFactory(user=user, first_name="Sara", last_name="Lind")
    return user


@pytest.fixture
def receiver(db):
    """Receiver with an Expo push token."""
    user = UserFactory()
    ProfileFactory(user=user, push_token=EXPO_TOKEN, push_token_type="expo")
    return user


@pytest.fixture
def silent_receiver(db):
    """Receiver without any push token."""
    user = UserFactory()
    ProfileFactory(user=user)
    return user


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def conversation(sender, receiver):
    return ConversationFactory(user_lower=sender, user_higher=receiver)


@pytest.fixture
def silent_conversation(sender, silent_receiver):
    return ConversationFactory(user_lower=sender, user_higher=silent_receiver)


@pytest.fixture
def send(sender):
    """Send a message from ``sender``; the post_save handler queues the notification."""

    def _send(conversation, content="hello", from_user=None):
        result = MessageService.send_message(conversation, from_user or sender, content)
        assert result.success, result.error
        return result.data

    return _send


# =============================================================================
# Push
# =============================================================================


@pytest.fixture
def mock_channel():
    """Replace channel lookup in the dispatch service with a mock channel."""
    channel = MagicMock()
    with patch("notifications.services.get_channel", return_value=channel) as get_channel:
        channel.get_channel = get_channel
        yield channel


# =============================================================================
# API Clients
# =============================================================================


@pytest.fixture
def staff_client(db):
    return _client_for(UserFactory(is_staff=True))


@pytest.fixture
def receiver_client(receiver):
    return _client_for(receiver)
