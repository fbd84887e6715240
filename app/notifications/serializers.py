"""
Serializers for notification API.

Serializers:
    NotificationSerializer: Read-only in-app notification
    NotificationListQuerySerializer: page / page_size query parameters
    NotificationListResponseSerializer: Paginated feed response
    UnreadCountSerializer: Response for unread count endpoint
    MarkAllReadResponseSerializer: Response for mark all read endpoint
    PreferenceSerializer: User delivery preferences (GET / PATCH)
    DeviceTokenSerializer: Push device registration

Usage:
    from notifications.serializers import NotificationSerializer

    serializer = NotificationSerializer(notification)
    data = serializer.data
"""

from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from rest_framework import serializers

from notifications.models import (
    DevicePlatform,
    DeviceToken,
    Notification,
    UserNotificationPreference,
)


class NotificationSerializer(serializers.ModelSerializer):
    """
    Serializer for Notification model.

    `type` exposes the level (info, success, warning, error).
    """

    type = serializers.CharField(source="level", read_only=True)

    class Meta:
        model = Notification
        fields = [
            "id",
            "title",
            "message",
            "type",
            "data",
            "is_read",
            "created_at",
        ]
        read_only_fields = fields


class NotificationListQuerySerializer(serializers.Serializer):
    """Query parameters for the notification list."""

    page = serializers.IntegerField(min_value=1, default=1)
    page_size = serializers.IntegerField(min_value=1, max_value=100, default=10)


class NotificationListResponseSerializer(serializers.Serializer):
    results = NotificationSerializer(many=True)
    total = serializers.IntegerField()
    unread_count = serializers.IntegerField()
    page = serializers.IntegerField()
    page_size = serializers.IntegerField()
    total_pages = serializers.IntegerField()


class UnreadCountSerializer(serializers.Serializer):
    """
    Response serializer for unread count endpoint.

    Fields:
        unread_count: Integer count of unread notifications
    """

    unread_count = serializers.IntegerField()


class MarkAllReadResponseSerializer(serializers.Serializer):
    """
    Response serializer for mark all read endpoint.

    Fields:
        marked_count: Integer count of notifications marked as read
    """

    marked_count = serializers.IntegerField()


# ============================================================================
# Preference Serializers
# ============================================================================


class PreferenceSerializer(serializers.ModelSerializer):
    """
    Serializer for UserNotificationPreference.

    Used for both the response and partial updates. Quiet hours are
    "HH:MM" local times; null on either bound disables quiet hours.
    """

    quiet_hours_start = serializers.TimeField(
        format="%H:%M", allow_null=True, required=False
    )
    quiet_hours_end = serializers.TimeField(
        format="%H:%M", allow_null=True, required=False
    )

    class Meta:
        model = UserNotificationPreference
        fields = [
            "push_enabled",
            "email_enabled",
            "sms_enabled",
            "booking_enabled",
            "payment_enabled",
            "system_enabled",
            "promotional_enabled",
            "quiet_hours_start",
            "quiet_hours_end",
            "timezone",
            "phone_number",
            "updated_at",
        ]
        read_only_fields = ["updated_at"]

    def validate_timezone(self, value: str) -> str:
        """Validate that the timezone is a known IANA name."""
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise serializers.ValidationError(f"Unknown timezone '{value}'")
        return value


# ============================================================================
# Device Serializers
# ============================================================================


class DeviceTokenSerializer(serializers.ModelSerializer):
    """
    Serializer for registering a push device token.

    Fields:
        token: FCM registration token
        platform: android, ios or web
    """

    token = serializers.CharField(max_length=512)
    platform = serializers.ChoiceField(
        choices=DevicePlatform.choices,
        default=DevicePlatform.ANDROID,
    )

    class Meta:
        model = DeviceToken
        fields = ["token", "platform", "is_active", "created_at"]
        read_only_fields = ["is_active", "created_at"]
