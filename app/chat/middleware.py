"""
WebSocket authentication middleware.

Provides JWT authentication for WebSocket connections.
Supports token via query string or subprotocol.

Related files:
    - routing.py: WebSocket URL patterns
    - consumers.py: WebSocket handlers
    - config/asgi.py: ASGI configuration

Token Passing Methods:
    1. Query string: ws://host/ws/chat/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)

JWT_SUBPROTOCOL = "jwt"


def get_token_from_query(scope) -> str | None:
    query_string = scope.get("query_string", b"").decode()
    token_list = parse_qs(query_string).get("token", [])
    return token_list[0] if token_list else None


def get_token_from_subprotocol(scope) -> str | None:
    """Expects: Sec-WebSocket-Protocol: jwt, <token>"""
    subprotocols = scope.get("subprotocols", [])
    if len(subprotocols) >= 2 and subprotocols[0] == JWT_SUBPROTOCOL:
        return subprotocols[1]
    return None


@database_sync_to_async
def get_user_from_token(token: str):
    """Active user for a valid access token, AnonymousUser otherwise."""
    User = get_user_model()

    try:
        user_id = AccessToken(token)["user_id"]
        user = User.objects.get(id=user_id)
    except TokenError as e:
        logger.warning(f"Invalid JWT token on websocket: {e}")
        return AnonymousUser()
    except (KeyError, User.DoesNotExist):
        logger.warning("No user for websocket token")
        return AnonymousUser()

    if not user.is_active:
        logger.warning(f"Inactive user attempted WebSocket connection: {user_id}")
        return AnonymousUser()

    return user


class JWTAuthMiddleware(BaseMiddleware):
    """
    JWT authentication middleware for WebSocket connections.

    Token sources (in order of precedence):
        1. Query string: ?token=<jwt_token>
        2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

    Usage:
        application = ProtocolTypeRouter({
            "websocket": JWTAuthMiddleware(URLRouter(websocket_urlpatterns)),
        })
    """

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = get_token_from_query(scope) or get_token_from_subprotocol(scope)

        if token:
            scope["user"] = await get_user_from_token(token)
        else:
            scope["user"] = AnonymousUser()

        return await super().__call__(scope, receive, send)
