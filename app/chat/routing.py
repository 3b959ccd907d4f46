"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - One connection per client, covering all of the user's
               conversations

Authentication:
    JWT access token as ?token=<jwt> or as the subprotocol pair
    ["jwt", <token>]. JWTAuthMiddleware attaches the user to the scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
]
