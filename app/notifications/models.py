"""
Notification system models.

This module defines the core models for the notification system:
- QueuedNotification: Durable delivery queue with retry bookkeeping
- UserNotificationPreference: Per-user channel/category opt-in and quiet hours
- NotificationTemplate: Named multi-channel templates with {{variable}} fields
- Notification: In-app feed entry owned by one user
- DeviceToken: Push registration tokens per user device

Design Decisions:
    - QueuedNotification and Notification use UUID PKs (IDs travel through
      Celery messages and API URLs)
    - NotificationTemplate uses integer PK (internal lookup table, looked up by key)
    - Preferences are one row per user with user as primary key
    - Queue status only moves pending -> processing -> {sent, pending, failed};
      the transitions live in notifications.processor
    - Notification.queue_item is unique so a re-dispatched in-app record
      never produces a second feed entry

Usage:
    from notifications.models import Channel, QueuedNotification

    pending = QueuedNotification.objects.due().order_by("priority", "created_at")
"""

from __future__ import annotations

import datetime

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


# =============================================================================
# Enums
# =============================================================================


class Channel(models.TextChoices):
    """Delivery channels for notifications."""

    PUSH = "push", "Push Notification"
    EMAIL = "email", "Email"
    SMS = "sms", "SMS"
    IN_APP = "in_app", "In-App"


class QueueStatus(models.TextChoices):
    """
    Status of a queued notification.

    State Flow:
        PENDING -> PROCESSING -> SENT
        PENDING -> PROCESSING -> PENDING (retry scheduled)
        PENDING -> PROCESSING -> FAILED (attempts exhausted, terminal)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"


class NotificationLevel(models.TextChoices):
    """Semantic type of an in-app notification (drives client styling)."""

    INFO = "info", "Info"
    SUCCESS = "success", "Success"
    WARNING = "warning", "Warning"
    ERROR = "error", "Error"


class NotificationCategory(models.TextChoices):
    """
    Categories users can opt out of as a whole.

    Promotional is opt-in; the others default to enabled.
    """

    BOOKING = "booking", "Booking"
    PAYMENT = "payment", "Payment"
    PROMOTIONAL = "promotional", "Promotional"
    SYSTEM = "system", "System"


class DevicePlatform(models.TextChoices):
    """Platform a push token was issued for."""

    ANDROID = "android", "Android"
    IOS = "ios", "iOS"
    WEB = "web", "Web"


# =============================================================================
# Queue
# =============================================================================


class QueuedNotificationQuerySet(models.QuerySet):
    def pending(self):
        return self.filter(status=QueueStatus.PENDING)

    def due(self, now: datetime.datetime | None = None):
        """Pending records whose process_after has been reached."""
        return self.pending().filter(process_after__lte=now or timezone.now())


def default_max_attempts() -> int:
    return settings.NOTIFICATION_MAX_ATTEMPTS


class QueuedNotification(UUIDPrimaryKeyMixin, BaseModel):
    """
    One delivery of one message over one channel to one user.

    Fields:
        recipient: User receiving the notification
        channel: push, email, sms or in_app
        priority: Lower is more urgent; drains order by (priority, created_at)
        title/message: Rendered content
        payload: Arbitrary structured data passed through to the channel
        level: In-app semantic type (only used for in_app delivery)
        address: Explicit push token / email / phone (blank = resolve at send)
        category: Preference category this notification belongs to (optional)
        status/attempts/max_attempts: Retry bookkeeping
        scheduled_at: Explicit schedule supplied by the caller, if any
        process_after: Earliest time a drain may dispatch this record
        sent_at/failed_at/last_error/provider_response: Outcome
        source/source_id: Provenance (e.g., "booking", booking id)

    Invariants:
        - attempts <= max_attempts
        - process_after >= created_at
        - a FAILED record never returns to PENDING
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="queued_notifications",
        help_text="User receiving this notification",
    )

    channel = models.CharField(
        max_length=10,
        choices=Channel.choices,
        help_text="Delivery channel",
    )

    priority = models.PositiveSmallIntegerField(
        default=5,
        help_text="Dispatch priority (lower number is dispatched first)",
    )

    title = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Rendered title (email subject for email)",
    )

    message = models.TextField(
        blank=True,
        default="",
        help_text="Rendered body (HTML for email)",
    )

    payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary data passed through to the channel",
    )

    level = models.CharField(
        max_length=10,
        choices=NotificationLevel.choices,
        default=NotificationLevel.INFO,
        help_text="In-app notification type",
    )

    address = models.CharField(
        max_length=512,
        blank=True,
        default="",
        help_text="Push token, email address or phone number override",
    )

    category = models.CharField(
        max_length=20,
        choices=NotificationCategory.choices,
        blank=True,
        default="",
        help_text="Preference category (blank = uncategorized)",
    )

    status = models.CharField(
        max_length=12,
        choices=QueueStatus.choices,
        default=QueueStatus.PENDING,
        db_index=True,
        help_text="Current queue status",
    )

    attempts = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of delivery attempts made",
    )

    max_attempts = models.PositiveSmallIntegerField(
        default=default_max_attempts,
        validators=[MinValueValidator(1)],
        help_text="Attempts allowed before the record is marked failed",
    )

    scheduled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Explicit schedule requested by the caller",
    )

    process_after = models.DateTimeField(
        default=timezone.now,
        help_text="Earliest time this record may be dispatched",
    )

    sent_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the channel accepted the notification",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the record was marked permanently failed",
    )

    last_error = models.TextField(
        blank=True,
        default="",
        help_text="Error from the most recent failed attempt",
    )

    provider_response = models.JSONField(
        null=True,
        blank=True,
        help_text="Provider name and message ID from the successful send",
    )

    source = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Subsystem that requested this notification",
    )

    source_id = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="ID of the source entity (booking, invoice, ...)",
    )

    objects = QueuedNotificationQuerySet.as_manager()

    class Meta:
        db_table = "notifications_queued_notification"
        verbose_name = "queued notification"
        verbose_name_plural = "queued notifications"
        ordering = ["priority", "created_at"]
        indexes = [
            # Drain query: due pending records by priority then FIFO
            models.Index(
                fields=["status", "process_after", "priority", "created_at"],
                name="notif_queue_drain_idx",
            ),
            models.Index(
                fields=["recipient", "-created_at"],
                name="notif_queue_recipient_idx",
            ),
            models.Index(
                fields=["source", "source_id"],
                name="notif_queue_source_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(max_attempts__gte=1),
                name="notif_queue_max_attempts_gte_1",
            ),
        ]

    def __str__(self) -> str:
        return f"QueuedNotification({self.id}, {self.channel}, {self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in (QueueStatus.SENT, QueueStatus.FAILED)


# =============================================================================
# Preferences
# =============================================================================


def default_quiet_hours_start() -> datetime.time:
    return datetime.time(22, 0)


def default_quiet_hours_end() -> datetime.time:
    return datetime.time(8, 0)


def default_timezone() -> str:
    return settings.NOTIFICATION_DEFAULT_TIMEZONE


class UserNotificationPreference(BaseModel):
    """
    Delivery preferences for a user.

    One-to-One with User, created lazily with the defaults below on first
    access (see notifications.preferences.PreferenceResolver). Quiet hours
    are local times in `timezone`; a start later than the end wraps past
    midnight. Clearing either bound disables quiet hours.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="notification_preference",
    )

    # Channel opt-in
    push_enabled = models.BooleanField(default=True)
    email_enabled = models.BooleanField(default=True)
    sms_enabled = models.BooleanField(default=False)

    # Category opt-in
    booking_enabled = models.BooleanField(default=True)
    payment_enabled = models.BooleanField(default=True)
    system_enabled = models.BooleanField(default=True)
    promotional_enabled = models.BooleanField(default=False)

    quiet_hours_start = models.TimeField(
        null=True,
        blank=True,
        default=default_quiet_hours_start,
        help_text="Local time quiet hours begin (null = no quiet hours)",
    )

    quiet_hours_end = models.TimeField(
        null=True,
        blank=True,
        default=default_quiet_hours_end,
        help_text="Local time quiet hours end (null = no quiet hours)",
    )

    timezone = models.CharField(
        max_length=64,
        default=default_timezone,
        help_text="IANA timezone name used for quiet hours",
    )

    phone_number = models.CharField(
        max_length=20,
        blank=True,
        default="",
        help_text="E.164 phone number for SMS delivery",
    )

    class Meta:
        db_table = "notifications_user_preference"
        verbose_name = "user notification preference"
        verbose_name_plural = "user notification preferences"

    def __str__(self) -> str:
        return f"NotificationPreference(user={self.user_id})"


# =============================================================================
# Templates
# =============================================================================


class NotificationTemplate(BaseModel):
    """
    Named template producing content for several channels at once.

    Fields hold `{{variable}}` placeholders expanded by
    notifications.rendering. Typically managed through the admin.

    Usage:
        NotificationTemplate.objects.create(
            key="booking_confirmed",
            name="Booking Confirmed",
            channels=["push", "email"],
            push_title="Booking confirmed",
            push_body="Your stay at {{hotelName}} is confirmed",
            email_subject="Booking {{bookingId}} confirmed",
            email_html="<p>See you at {{hotelName}}!</p>",
        )
    """

    key = models.CharField(
        max_length=100,
        unique=True,
        help_text="Unique programmatic identifier (e.g., 'booking_confirmed')",
    )

    name = models.CharField(
        max_length=200,
        help_text="Human-readable name for display",
    )

    is_enabled = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Disabled templates produce no notifications",
    )

    category = models.CharField(
        max_length=20,
        choices=NotificationCategory.choices,
        blank=True,
        default="",
        help_text="Preference category applied to every channel",
    )

    channels = models.JSONField(
        default=list,
        blank=True,
        help_text="Channels to deliver on, e.g. [\"push\", \"email\"]",
    )

    priority = models.PositiveSmallIntegerField(
        default=5,
        help_text="Queue priority for notifications from this template",
    )

    push_title = models.CharField(max_length=255, blank=True, default="")
    push_body = models.TextField(blank=True, default="")
    email_subject = models.CharField(max_length=255, blank=True, default="")
    email_html = models.TextField(blank=True, default="")
    email_text = models.TextField(blank=True, default="")
    sms_text = models.TextField(blank=True, default="")
    in_app_title = models.CharField(max_length=255, blank=True, default="")
    in_app_message = models.TextField(blank=True, default="")

    class Meta:
        db_table = "notifications_template"
        verbose_name = "notification template"
        verbose_name_plural = "notification templates"
        ordering = ["key"]

    def __str__(self) -> str:
        return f"{self.name} ({self.key})"


# =============================================================================
# In-App Feed
# =============================================================================


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    In-app notification shown in a user's feed.

    Owned exclusively by `recipient`: all reads, updates and deletes are
    scoped to the owner (see notifications.services.InAppNotificationService).

    Fields:
        recipient: Owner of the feed entry
        title/message: Display content
        level: info, success, warning or error
        data: Arbitrary context (deep links, ids)
        is_read: Read flag
        queue_item: Queue record that produced this entry (if any)
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User owning this notification",
    )

    title = models.CharField(
        max_length=255,
        help_text="Notification title",
    )

    message = models.TextField(
        blank=True,
        default="",
        help_text="Notification body",
    )

    level = models.CharField(
        max_length=10,
        choices=NotificationLevel.choices,
        default=NotificationLevel.INFO,
        help_text="Semantic type for client styling",
    )

    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary context data (deep links, metadata)",
    )

    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )

    queue_item = models.OneToOneField(
        QueuedNotification,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="in_app_notification",
        help_text="Queue record that delivered this notification",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            # Primary query: user's feed and unread count
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return f"Notification({self.level}) -> User {self.recipient_id} [{read_status}]"


# =============================================================================
# Devices
# =============================================================================


class DeviceToken(BaseModel):
    """
    Push registration token for one of a user's devices.

    Push notifications queued without an explicit address are sent to the
    user's most recently registered active token. Tokens reported invalid
    by FCM are deactivated rather than deleted.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="device_tokens",
    )

    token = models.CharField(
        max_length=512,
        unique=True,
        help_text="FCM registration token",
    )

    platform = models.CharField(
        max_length=10,
        choices=DevicePlatform.choices,
        default=DevicePlatform.ANDROID,
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
    )

    class Meta:
        db_table = "notifications_device_token"
        verbose_name = "device token"
        verbose_name_plural = "device tokens"
        indexes = [
            models.Index(
                fields=["user", "is_active", "-updated_at"],
                name="notif_device_user_active_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"DeviceToken(user={self.user_id}, {self.platform})"
