"""
Constants and configuration for the chat module.

Import example:
    from chat.constants import MESSAGE_CONFIG, REALTIME_CONFIG
"""

from typing import Final


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    MAX_CONTENT_LENGTH: Final[int] = 5000  # Characters

    # Offset pagination for history
    DEFAULT_PAGE_SIZE: Final[int] = 15
    MAX_PAGE_SIZE: Final[int] = 100

    # Conversation list preview
    PREVIEW_LENGTH: Final[int] = 100


class REALTIME_CONFIG:
    """Configuration for realtime message events."""

    # Channel layer group per user; every conversation the user is in
    # publishes to it
    USER_GROUP_PREFIX: Final[str] = "chat_user_"

    # Channel layer message type handled by ChatConsumer.message_event
    EVENT_MESSAGE_TYPE: Final[str] = "message.event"


class WEBSOCKET_CLOSE_CODES:
    """Application close codes for the chat websocket."""

    UNAUTHENTICATED: Final[int] = 4001
