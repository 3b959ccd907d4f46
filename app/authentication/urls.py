"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/token/           - Obtain JWT access/refresh pair
    /api/v1/auth/token/refresh/   - Refresh access token
    /api/v1/auth/me/              - Current user with profile
    /api/v1/auth/push-token/      - Register/unregister push token
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from authentication.views import MeView, PushTokenView

app_name = "authentication"

urlpatterns = [
    path("token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("me/", MeView.as_view(), name="me"),
    path("push-token/", PushTokenView.as_view(), name="push-token"),
]
