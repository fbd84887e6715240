import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import notifications.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="QueuedNotification",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "channel",
                    models.CharField(
                        choices=[
                            ("push", "Push Notification"),
                            ("email", "Email"),
                            ("sms", "SMS"),
                            ("in_app", "In-App"),
                        ],
                        help_text="Delivery channel",
                        max_length=10,
                    ),
                ),
                (
                    "priority",
                    models.PositiveSmallIntegerField(
                        default=5,
                        help_text="Dispatch priority (lower number is dispatched first)",
                    ),
                ),
                (
                    "title",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Rendered title (email subject for email)",
                        max_length=255,
                    ),
                ),
                (
                    "message",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Rendered body (HTML for email)",
                    ),
                ),
                (
                    "payload",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary data passed through to the channel",
                    ),
                ),
                (
                    "level",
                    models.CharField(
                        choices=[
                            ("info", "Info"),
                            ("success", "Success"),
                            ("warning", "Warning"),
                            ("error", "Error"),
                        ],
                        default="info",
                        help_text="In-app notification type",
                        max_length=10,
                    ),
                ),
                (
                    "address",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Push token, email address or phone number override",
                        max_length=512,
                    ),
                ),
                (
                    "category",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("booking", "Booking"),
                            ("payment", "Payment"),
                            ("promotional", "Promotional"),
                            ("system", "System"),
                        ],
                        default="",
                        help_text="Preference category (blank = uncategorized)",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("sent", "Sent"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current queue status",
                        max_length=12,
                    ),
                ),
                (
                    "attempts",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of delivery attempts made",
                    ),
                ),
                (
                    "max_attempts",
                    models.PositiveSmallIntegerField(
                        default=notifications.models.default_max_attempts,
                        help_text="Attempts allowed before the record is marked failed",
                    ),
                ),
                (
                    "scheduled_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Explicit schedule requested by the caller",
                        null=True,
                    ),
                ),
                (
                    "process_after",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="Earliest time this record may be dispatched",
                    ),
                ),
                (
                    "sent_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the channel accepted the notification",
                        null=True,
                    ),
                ),
                (
                    "failed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the record was marked permanently failed",
                        null=True,
                    ),
                ),
                (
                    "last_error",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Error from the most recent failed attempt",
                    ),
                ),
                (
                    "provider_response",
                    models.JSONField(
                        blank=True,
                        help_text="Provider name and message ID from the successful send",
                        null=True,
                    ),
                ),
                (
                    "source",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Subsystem that requested this notification",
                        max_length=50,
                    ),
                ),
                (
                    "source_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="ID of the source entity (booking, invoice, ...)",
                        max_length=100,
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        help_text="User receiving this notification",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="queued_notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "queued notification",
                "verbose_name_plural": "queued notifications",
                "db_table": "notifications_queued_notification",
                "ordering": ["priority", "created_at"],
                "indexes": [
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
                ],
            },
        ),
        migrations.CreateModel(
            name="UserNotificationPreference",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="notification_preference",
                        serialize=False,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                ("push_enabled", models.BooleanField(default=True)),
                ("email_enabled", models.BooleanField(default=True)),
                ("sms_enabled", models.BooleanField(default=False)),
                ("booking_enabled", models.BooleanField(default=True)),
                ("payment_enabled", models.BooleanField(default=True)),
                ("system_enabled", models.BooleanField(default=True)),
                ("promotional_enabled", models.BooleanField(default=False)),
                (
                    "quiet_hours_start",
                    models.TimeField(
                        blank=True,
                        default=notifications.models.default_quiet_hours_start,
                        help_text="Local time quiet hours begin (null = no quiet hours)",
                        null=True,
                    ),
                ),
                (
                    "quiet_hours_end",
                    models.TimeField(
                        blank=True,
                        default=notifications.models.default_quiet_hours_end,
                        help_text="Local time quiet hours end (null = no quiet hours)",
                        null=True,
                    ),
                ),
                (
                    "timezone",
                    models.CharField(
                        default=notifications.models.default_timezone,
                        help_text="IANA timezone name used for quiet hours",
                        max_length=64,
                    ),
                ),
                (
                    "phone_number",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="E.164 phone number for SMS delivery",
                        max_length=20,
                    ),
                ),
            ],
            options={
                "verbose_name": "user notification preference",
                "verbose_name_plural": "user notification preferences",
                "db_table": "notifications_user_preference",
            },
        ),
        migrations.CreateModel(
            name="NotificationTemplate",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "key",
                    models.CharField(
                        help_text="Unique programmatic identifier (e.g., 'booking_confirmed')",
                        max_length=100,
                        unique=True,
                    ),
                ),
                (
                    "name",
                    models.CharField(
                        help_text="Human-readable name for display",
                        max_length=200,
                    ),
                ),
                (
                    "is_enabled",
                    models.BooleanField(
                        db_index=True,
                        default=True,
                        help_text="Disabled templates produce no notifications",
                    ),
                ),
                (
                    "category",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("booking", "Booking"),
                            ("payment", "Payment"),
                            ("promotional", "Promotional"),
                            ("system", "System"),
                        ],
                        default="",
                        help_text="Preference category applied to every channel",
                        max_length=20,
                    ),
                ),
                (
                    "channels",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text='Channels to deliver on, e.g. ["push", "email"]',
                    ),
                ),
                (
                    "priority",
                    models.PositiveSmallIntegerField(
                        default=5,
                        help_text="Queue priority for notifications from this template",
                    ),
                ),
                ("push_title", models.CharField(blank=True, default="", max_length=255)),
                ("push_body", models.TextField(blank=True, default="")),
                ("email_subject", models.CharField(blank=True, default="", max_length=255)),
                ("email_html", models.TextField(blank=True, default="")),
                ("email_text", models.TextField(blank=True, default="")),
                ("sms_text", models.TextField(blank=True, default="")),
                ("in_app_title", models.CharField(blank=True, default="", max_length=255)),
                ("in_app_message", models.TextField(blank=True, default="")),
            ],
            options={
                "verbose_name": "notification template",
                "verbose_name_plural": "notification templates",
                "db_table": "notifications_template",
                "ordering": ["key"],
            },
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "title",
                    models.CharField(help_text="Notification title", max_length=255),
                ),
                (
                    "message",
                    models.TextField(
                        blank=True, default="", help_text="Notification body"
                    ),
                ),
                (
                    "level",
                    models.CharField(
                        choices=[
                            ("info", "Info"),
                            ("success", "Success"),
                            ("warning", "Warning"),
                            ("error", "Error"),
                        ],
                        default="info",
                        help_text="Semantic type for client styling",
                        max_length=10,
                    ),
                ),
                (
                    "data",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary context data (deep links, metadata)",
                    ),
                ),
                (
                    "is_read",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether recipient has read this notification",
                    ),
                ),
                (
                    "queue_item",
                    models.OneToOneField(
                        blank=True,
                        help_text="Queue record that delivered this notification",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="in_app_notification",
                        to="notifications.queuednotification",
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        help_text="User owning this notification",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "notifications_notification",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["recipient", "is_read", "-created_at"],
                        name="notif_recipient_unread_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DeviceToken",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "token",
                    models.CharField(
                        help_text="FCM registration token",
                        max_length=512,
                        unique=True,
                    ),
                ),
                (
                    "platform",
                    models.CharField(
                        choices=[
                            ("android", "Android"),
                            ("ios", "iOS"),
                            ("web", "Web"),
                        ],
                        default="android",
                        max_length=10,
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="device_tokens",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "device token",
                "verbose_name_plural": "device tokens",
                "db_table": "notifications_device_token",
                "indexes": [
                    models.Index(
                        fields=["user", "is_active", "-updated_at"],
                        name="notif_device_user_active_idx",
                    ),
                ],
            },
        ),
    ]
