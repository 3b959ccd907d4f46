"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/                     GET, POST
        /conversations/unread/              GET
        /conversations/{id}/read/           POST
        /conversations/{id}/clear/          POST
        /conversations/{id}/delete/         POST

    Messages:
        /conversations/{id}/messages/       GET, POST

    Recent chats:
        /recent/                            GET

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import ConversationViewSet, MessageViewSet, RecentChatView

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
    path(
        "conversations/<int:conversation_pk>/messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="conversation-message-list",
    ),
    path("recent/", RecentChatView.as_view(), name="recent-chats"),
]
