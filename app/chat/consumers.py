"""
WebSocket consumer for the chat application.

One connection per client. The consumer owns a ChatSession and forwards
client actions to it; realtime message events for the user arrive through
the per-user channel group and are fed to the same session.

Authentication:
    JWTAuthMiddleware attaches the user to self.scope["user"].
    Unauthenticated connections are closed with code 4001.

Channel Groups:
    chat_user_<user_id>: every message event in the user's conversations.

Actions (from client, {"action": ..., ...}):
    - list: reload the conversation list
    - open: {"conversation_id": int}
    - open_user: {"user_id": int} get-or-create, then open
    - load_older: prepend the next older page
    - send: {"content": str}
    - clear: clear the active chat for this user
    - delete: {"conversation_id": int | null} delete for this user
    - ping

Messages (to client):
    - state: session snapshot after every action
    - event: raw realtime event, followed by a state message
    - error: {"error", "error_code"}
    - pong
"""

from __future__ import annotations

import logging

from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.conf import settings

from chat.constants import MESSAGE_CONFIG, WEBSOCKET_CLOSE_CODES
from chat.middleware import JWT_SUBPROTOCOL, get_token_from_subprotocol
from chat.realtime import user_group_name
from chat.session import ChatSession
from chat.store import DjangoChatStore
from core.exceptions import BaseApplicationError, ValidationError

logger = logging.getLogger(__name__)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer driving a ChatSession.

    Attributes:
        session: ChatSession for the connected user (after connect)
        group_name: Channel layer group for the user's message events
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.session: ChatSession | None = None
        self.group_name: str | None = None

    async def connect(self):
        user = self.scope.get("user")

        if user is None or not user.is_authenticated:
            logger.warning("Rejected unauthenticated chat websocket connection")
            await self.close(code=WEBSOCKET_CLOSE_CODES.UNAUTHENTICATED)
            return

        self.group_name = user_group_name(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)

        if get_token_from_subprotocol(self.scope):
            await self.accept(subprotocol=JWT_SUBPROTOCOL)
        else:
            await self.accept()

        self.session = ChatSession(
            DjangoChatStore(),
            user_id=user.id,
            page_size=getattr(settings, "CHAT_PAGE_SIZE", MESSAGE_CONFIG.DEFAULT_PAGE_SIZE),
        )
        await self.session.load_conversations()
        await self.send_state()
        logger.info(f"User {user.id} connected to chat")

    async def disconnect(self, close_code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
            logger.info(f"Chat websocket for {self.group_name} closed ({close_code})")

    async def receive_json(self, content, **kwargs):
        action = content.get("action") if isinstance(content, dict) else None

        if action == "ping":
            await self.send_json({"type": "pong"})
            return

        handler = self.actions.get(action)
        if handler is None:
            await self.send_error(
                ValidationError(f"Unknown action: {action}", error_code="UNKNOWN_ACTION")
            )
            return

        try:
            await handler(self, content)
        except BaseApplicationError as exc:
            await self.send_error(exc)
            return

        await self.send_state()

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def _list(self, content):
        await self.session.load_conversations()

    async def _open(self, content):
        await self.session.open_conversation(_int_field(content, "conversation_id"))

    async def _open_user(self, content):
        await self.session.open_with_user(_int_field(content, "user_id"))

    async def _load_older(self, content):
        await self.session.load_older()

    async def _send(self, content):
        await self.session.send(content.get("content") or "")

    async def _clear(self, content):
        await self.session.clear_chat()

    async def _delete(self, content):
        conversation_id = content.get("conversation_id")
        if conversation_id is not None:
            conversation_id = _int_field(content, "conversation_id")
        await self.session.delete_chat(conversation_id)

    actions = {
        "list": _list,
        "open": _open,
        "open_user": _open_user,
        "load_older": _load_older,
        "send": _send,
        "clear": _clear,
        "delete": _delete,
    }

    # -------------------------------------------------------------------------
    # Channel layer handlers
    # -------------------------------------------------------------------------

    async def message_event(self, event):
        """Handle message.event from the user's group."""
        if self.session is None:
            return

        payload = event["event"]
        await self.session.handle_event(payload)
        await self.send_json({"type": "event", "event": payload})
        await self.send_state()

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    async def send_state(self):
        await self.send_json({"type": "state", **self.session.snapshot()})

    async def send_error(self, exc: BaseApplicationError):
        await self.send_json({"type": "error", **exc.to_dict()})


def _int_field(content, name: str) -> int:
    try:
        return int(content[name])
    except (KeyError, TypeError, ValueError):
        raise ValidationError(f"'{name}' must be an integer", error_code="INVALID_PAYLOAD") from None
