"""
Realtime message events.

Every insert, update or delete on the message log becomes an event:

    {
        "event_type": "INSERT" | "UPDATE" | "DELETE",
        "new": {id, conversation_id, sender_id, content, created_at} | None,
        "old": {...} | None,
    }

Events are published to one group per participant (``chat_user_<id>``).
A connected client holds a single subscription covering all of its
conversations; ChatSession decides which events touch the open view.

Buses:
    ChannelLayerEventBus: Django Channels group_send (production)
    InMemoryEventBus: In-process queue with explicit flush (tests, tooling)

Within one group the channel layer delivers in publish order, and
publishing happens on transaction commit, so a subscriber sees its
conversations' events in commit order.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any, Final, Protocol

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from chat.constants import REALTIME_CONFIG

if TYPE_CHECKING:
    from chat.models import Message

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class MessageEventType:
    INSERT: Final[str] = "INSERT"
    UPDATE: Final[str] = "UPDATE"
    DELETE: Final[str] = "DELETE"


def message_to_row(message: Message) -> dict[str, Any]:
    """Wire representation of a message (JSON and msgpack safe)."""
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "content": message.content,
        "created_at": message.created_at.isoformat(),
    }


def build_event(
    event_type: str,
    new: dict[str, Any] | None = None,
    old: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {"event_type": event_type, "new": new, "old": old}


def user_group_name(user_id: int) -> str:
    return f"{REALTIME_CONFIG.USER_GROUP_PREFIX}{user_id}"


class MessageEventBus(Protocol):
    """Publishes message events to the given users' subscriptions."""

    def publish(self, user_ids: Iterable[int], event: dict[str, Any]) -> None: ...


class ChannelLayerEventBus:
    """
    Publish through the Django Channels layer.

    Each user group receives a ``message.event`` channel message, handled
    by ChatConsumer.message_event.
    """

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer

    @property
    def channel_layer(self):
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    def publish(self, user_ids: Iterable[int], event: dict[str, Any]) -> None:
        layer = self.channel_layer
        if layer is None:
            logger.warning("No channel layer configured; dropping realtime event")
            return

        for user_id in user_ids:
            async_to_sync(layer.group_send)(
                user_group_name(user_id),
                {"type": REALTIME_CONFIG.EVENT_MESSAGE_TYPE, "event": event},
            )


class InMemoryEventBus:
    """
    In-process bus.

    ``publish`` only queues; ``flush`` delivers queued events to the
    subscribed handlers in publish order. This mirrors the gap between a
    write and its realtime echo.
    """

    def __init__(self):
        self._subscribers: dict[int, list[EventHandler]] = defaultdict(list)
        self._queue: deque[tuple[int, dict[str, Any]]] = deque()
        self.published: list[tuple[int, dict[str, Any]]] = []

    def publish(self, user_ids: Iterable[int], event: dict[str, Any]) -> None:
        for user_id in user_ids:
            self._queue.append((user_id, event))
            self.published.append((user_id, event))

    def subscribe(self, user_id: int, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` for a user. Returns an unsubscribe callable."""
        self._subscribers[user_id].append(handler)

        def unsubscribe() -> None:
            if handler in self._subscribers[user_id]:
                self._subscribers[user_id].remove(handler)

        return unsubscribe

    async def flush(self) -> int:
        """Deliver all queued events. Returns how many were delivered."""
        delivered = 0
        while self._queue:
            user_id, event = self._queue.popleft()
            for handler in list(self._subscribers[user_id]):
                await handler(event)
                delivered += 1
        return delivered


_event_bus: MessageEventBus | None = None


def get_event_bus() -> MessageEventBus:
    """Bus used by the model signals (channel layer unless replaced)."""
    global _event_bus
    if _event_bus is None:
        _event_bus = ChannelLayerEventBus()
    return _event_bus


def set_event_bus(bus: MessageEventBus | None) -> MessageEventBus | None:
    """Replace the signal bus. Returns the previous one; None restores the default."""
    global _event_bus
    previous = _event_bus
    _event_bus = bus
    return previous
