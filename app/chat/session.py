"""
Chat session controller.

One ChatSession drives one open chat view (one websocket connection).
It owns the local view state and keeps it consistent with the store and
the viewer's clear/delete overlay.

States:
    idle     - no active conversation
    loading  - initial fetch for the active conversation in flight
    ready    - messages loaded
    cleared  - ready, but the view starts at the viewer's clear cutoff

Transitions:
    open_conversation(id)   idle/ready/cleared -> loading -> ready|cleared
    load_older()            ready|cleared -> same state (prepends)
    send(content)           no state change; no local append
    clear_chat()            any -> cleared (view emptied)
    delete_chat()           any -> idle (view emptied, active id unset)

Invariants:
    - The realtime INSERT echo is the only path that appends a message,
      including the viewer's own sends. ``send`` never touches
      ``messages``, so a sender subscribed to its own echo sees each
      message exactly once.
    - A fetch is applied only if its conversation is still the active one
      when it completes; late results for an abandoned conversation are
      dropped.
    - Reads fail soft: a store error leaves an empty list and sets
      ``error`` instead of raising.

Usage:
    session = ChatSession(DjangoChatStore(), user_id=request_user.id)
    await session.load_conversations()
    await session.open_conversation(conversation_id)
    await session.send("hi")          # appears after the INSERT echo
    await session.handle_event(event) # from the realtime subscription
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any, Final, Protocol

from django.utils.dateparse import parse_datetime

from chat.constants import MESSAGE_CONFIG
from chat.realtime import MessageEventType
from core.exceptions import BaseApplicationError, ValidationError

logger = logging.getLogger(__name__)


class SessionState:
    IDLE: Final[str] = "idle"
    LOADING: Final[str] = "loading"
    READY: Final[str] = "ready"
    CLEARED: Final[str] = "cleared"


class ChatStore(Protocol):
    """Async store operations the session depends on."""

    async def list_conversations(self, user_id: int) -> list[dict[str, Any]]: ...

    async def get_or_create_conversation(self, user_id: int, other_user_id: int) -> int: ...

    async def get_cleared_at(self, user_id: int, conversation_id: int) -> datetime | None: ...

    async def fetch_messages(
        self, conversation_id: int, user_id: int, offset: int, limit: int
    ) -> list[dict[str, Any]]: ...

    async def append_message(
        self, conversation_id: int, sender_id: int, content: str
    ) -> dict[str, Any]: ...

    async def clear_chat(self, user_id: int, conversation_id: int) -> datetime: ...

    async def delete_chat(self, user_id: int, conversation_id: int) -> None: ...

    async def mark_as_read(self, user_id: int, conversation_id: int) -> None: ...


def _created_at(row: dict[str, Any]) -> datetime | None:
    value = row.get("created_at")
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return parse_datetime(value)
    return None


class ChatSession:
    """State machine for a single chat view."""

    def __init__(
        self,
        store: ChatStore,
        user_id: int,
        page_size: int = MESSAGE_CONFIG.DEFAULT_PAGE_SIZE,
    ):
        self.store = store
        self.user_id = user_id
        self.page_size = page_size

        self.state: str = SessionState.IDLE
        self.active_conversation_id: int | None = None
        self.messages: list[dict[str, Any]] = []
        self.conversations: list[dict[str, Any]] = []
        self.cleared_at: datetime | None = None
        self.has_more: bool = False
        self.error: dict[str, Any] | None = None

        self._unsubscribe: Callable[[], None] | None = None

    # -------------------------------------------------------------------------
    # Subscription
    # -------------------------------------------------------------------------

    def attach(self, bus) -> None:
        """Subscribe to the viewer's realtime events on ``bus``."""
        self.detach()
        self._unsubscribe = bus.subscribe(self.user_id, self.handle_event)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # -------------------------------------------------------------------------
    # Conversation list
    # -------------------------------------------------------------------------

    async def load_conversations(self) -> list[dict[str, Any]]:
        try:
            self.conversations = list(await self.store.list_conversations(self.user_id))
        except BaseApplicationError as exc:
            logger.warning(f"Conversation list failed for user {self.user_id}: {exc}")
            self.conversations = []
            self.error = exc.to_dict()
        return self.conversations

    # -------------------------------------------------------------------------
    # Opening and paging
    # -------------------------------------------------------------------------

    async def open_with_user(self, other_user_id: int) -> bool:
        """Get-or-create the conversation with another user and open it."""
        conversation_id = await self.store.get_or_create_conversation(self.user_id, other_user_id)
        return await self.open_conversation(conversation_id)

    async def open_conversation(self, conversation_id: int) -> bool:
        """
        Make ``conversation_id`` active and load its newest page.

        Returns False when the fetch failed or was discarded as stale.
        """
        self.active_conversation_id = conversation_id
        self.state = SessionState.LOADING
        self.messages = []
        self.cleared_at = None
        self.has_more = False
        self.error = None

        try:
            cleared_at = await self.store.get_cleared_at(self.user_id, conversation_id)
            page = await self.store.fetch_messages(
                conversation_id, self.user_id, 0, self.page_size
            )
        except BaseApplicationError as exc:
            if self.active_conversation_id != conversation_id:
                return False
            logger.warning(f"Opening conversation {conversation_id} failed: {exc}")
            self.error = exc.to_dict()
            self.state = SessionState.READY
            return False

        if self.active_conversation_id != conversation_id:
            logger.debug(
                f"Discarding stale fetch for conversation {conversation_id}; "
                f"active is {self.active_conversation_id}"
            )
            return False

        self.cleared_at = cleared_at
        # Echoes that arrived while loading and are newer than the page
        page_ids = {m["id"] for m in page}
        arrived = [
            m for m in self.messages if m["id"] not in page_ids and self._after_cutoff(m)
        ]
        self.messages = list(page) + arrived
        self.has_more = len(page) == self.page_size
        self.state = SessionState.CLEARED if cleared_at else SessionState.READY

        try:
            await self.store.mark_as_read(self.user_id, conversation_id)
        except BaseApplicationError as exc:
            logger.warning(f"Mark as read failed for conversation {conversation_id}: {exc}")
        return True

    async def load_older(self) -> int:
        """
        Prepend the next older page. Returns how many messages were added.

        The offset is the number of messages already loaded.
        """
        if self.active_conversation_id is None or self.state not in (
            SessionState.READY,
            SessionState.CLEARED,
        ):
            return 0

        conversation_id = self.active_conversation_id
        try:
            page = await self.store.fetch_messages(
                conversation_id, self.user_id, len(self.messages), self.page_size
            )
        except BaseApplicationError as exc:
            if self.active_conversation_id == conversation_id:
                self.error = exc.to_dict()
            return 0

        if self.active_conversation_id != conversation_id:
            return 0

        loaded_ids = {m["id"] for m in self.messages}
        older = [m for m in page if m["id"] not in loaded_ids]
        self.messages = older + self.messages
        self.has_more = len(page) == self.page_size
        return len(older)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def send(self, content: str) -> dict[str, Any]:
        """
        Send a message to the active conversation.

        Raises:
            ValidationError: empty content or no active conversation,
                before any store call
        """
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message content cannot be empty", error_code="EMPTY_CONTENT")
        if self.active_conversation_id is None:
            raise ValidationError("No conversation is open", error_code="NO_ACTIVE_CONVERSATION")

        return await self.store.append_message(self.active_conversation_id, self.user_id, content)

    async def clear_chat(self) -> datetime:
        if self.active_conversation_id is None:
            raise ValidationError("No conversation is open", error_code="NO_ACTIVE_CONVERSATION")

        conversation_id = self.active_conversation_id
        cleared_at = await self.store.clear_chat(self.user_id, conversation_id)
        if self.active_conversation_id != conversation_id:
            # The cutoff is stored; the view has moved on
            return cleared_at

        self.messages = []
        self.cleared_at = cleared_at
        self.has_more = False
        self.state = SessionState.CLEARED
        return cleared_at

    async def delete_chat(self, conversation_id: int | None = None) -> None:
        """Delete ``conversation_id`` (default: the active one) for the viewer."""
        target = conversation_id if conversation_id is not None else self.active_conversation_id
        if target is None:
            raise ValidationError("No conversation is open", error_code="NO_ACTIVE_CONVERSATION")

        await self.store.delete_chat(self.user_id, target)
        self.conversations = [c for c in self.conversations if c["conversation_id"] != target]

        if self.active_conversation_id == target:
            self.active_conversation_id = None
            self.messages = []
            self.cleared_at = None
            self.has_more = False
            self.state = SessionState.IDLE

    # -------------------------------------------------------------------------
    # Realtime
    # -------------------------------------------------------------------------

    async def handle_event(self, event: dict[str, Any]) -> None:
        event_type = event.get("event_type")
        new = event.get("new") or {}
        old = event.get("old") or {}

        if event_type == MessageEventType.INSERT:
            if self._belongs_to_view(new) and not self._has_message(new.get("id")):
                self.messages.append(new)
            await self.load_conversations()

        elif event_type == MessageEventType.UPDATE:
            message_id = new.get("id")
            self.messages = [new if m["id"] == message_id else m for m in self.messages]

        elif event_type == MessageEventType.DELETE:
            message_id = old.get("id")
            self.messages = [m for m in self.messages if m["id"] != message_id]

        else:
            logger.debug(f"Ignoring unknown realtime event type: {event_type}")

    def _belongs_to_view(self, row: dict[str, Any]) -> bool:
        if self.active_conversation_id is None:
            return False
        if row.get("conversation_id") != self.active_conversation_id:
            return False
        return self._after_cutoff(row)

    def _after_cutoff(self, row: dict[str, Any]) -> bool:
        if self.cleared_at is None:
            return True
        created_at = _created_at(row)
        return created_at is not None and created_at > self.cleared_at

    def _has_message(self, message_id) -> bool:
        return any(m["id"] == message_id for m in self.messages)

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe view state."""
        return {
            "state": self.state,
            "active_conversation_id": self.active_conversation_id,
            "messages": self.messages,
            "conversations": self.conversations,
            "cleared_at": self.cleared_at.isoformat() if self.cleared_at else None,
            "has_more": self.has_more,
            "error": self.error,
        }
