"""
URL configuration for the chat backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        token/                     - Obtain JWT pair (email/password)
        token/refresh/             - Refresh access token
        me/                        - Current user with profile
        push-token/                - Register/unregister push token
    /api/v1/chat/                  - Chat endpoints
        conversations/             - Conversation list / get-or-create
        conversations/unread/      - Total unread count
        conversations/{id}/read/   - Mark conversation as read
        conversations/{id}/clear/  - Clear chat for the current user
        conversations/{id}/delete/ - Hide chat from the current user's list
        conversations/{id}/messages/ - Message history (offset/limit) / send
        recent/                    - Recent chats listing
    /api/v1/notifications/         - Notification endpoints
        dispatch/                  - Run a dispatch pass (staff only)
        pending/                   - Current user's undelivered notifications

WebSocket routes live in chat/routing.py.
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("chat/", include("chat.urls")),
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Campus Chat Admin"
admin.site.site_title = "Campus Chat"
admin.site.index_title = "Chat administration"
