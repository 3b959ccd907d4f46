"""
Test configuration and fixtures for chat tests.

This module provides:
- Two users with named profiles and a conversation between them
- An outsider who is not a participant
- JWT-authenticated API clients
- An in-memory event bus installed for the model signals

Usage:
    def test_example(conversation, alice_client):
        response = alice_client.get(f"/api/v1/chat/conversations/{conversation.id}/messages/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import ProfileFactory, UserFactory
from chat.realtime import InMemoryEventBus, set_event_bus
from chat.tests.factories import ConversationFactory


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    user = UserFactory()
    ProfileFactory(user=user, first_name="Alice", last_name="Moreau", university="Sorbonne")
    return user


@pytest.fixture
def bob(db):
    user = UserFactory()
    ProfileFactory(user=user, first_name="Bob", last_name="Nkemelu", university="Sorbonne")
    return user


@pytest.fixture
def outsider(db):
    """A user who is not a participant in the test conversation."""
    return UserFactory()


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def conversation(alice, bob):
    return ConversationFactory(user_lower=alice, user_higher=bob)


# =============================================================================
# API Clients
# =============================================================================


@pytest.fixture
def alice_client(alice):
    return _client_for(alice)


@pytest.fixture
def bob_client(bob):
    return _client_for(bob)


@pytest.fixture
def outsider_client(outsider):
    return _client_for(outsider)


@pytest.fixture
def anon_client():
    return APIClient()


# =============================================================================
# Realtime
# =============================================================================


@pytest.fixture
def event_bus():
    """Route model signal events into an InMemoryEventBus for the test."""
    bus = InMemoryEventBus()
    previous = set_event_bus(bus)
    yield bus
    set_event_bus(previous)
