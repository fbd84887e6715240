"""
URL configuration for notifications API.

Routes:
    Notifications:
        /                     - List notifications (GET)
        /unread-count/        - Get unread count (GET)
        /{id}/                - Delete notification (DELETE)
        /{id}/read/           - Mark single as read (POST)
        /read-all/            - Mark all as read (POST)

    Preferences:
        /preferences/         - Get / update delivery preferences (GET, PATCH)

    Devices:
        /devices/             - Register push device token (POST)
        /devices/{token}/     - Unregister push device token (DELETE)
"""

from django.urls import path

from rest_framework.routers import SimpleRouter

from notifications.views import (
    DeviceViewSet,
    NotificationViewSet,
    PreferenceView,
)

# Devices are registered first so "devices/" is not read as a notification id
router = SimpleRouter()
router.register(r"devices", DeviceViewSet, basename="device")
router.register(r"", NotificationViewSet, basename="notification")

app_name = "notifications"
urlpatterns = [
    path("preferences/", PreferenceView.as_view(), name="preferences"),
] + router.urls
