"""
URL configuration for notifications API.

Routes:
    /dispatch/    - Run a dispatch pass (POST, staff)
    /pending/     - Undelivered notifications for the current user (GET)
"""

from django.urls import path

from notifications.views import DispatchView, PendingNotificationListView

app_name = "notifications"
urlpatterns = [
    path("dispatch/", DispatchView.as_view(), name="dispatch"),
    path("pending/", PendingNotificationListView.as_view(), name="pending"),
]
