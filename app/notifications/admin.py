"""
Django admin configuration for notification models.

Registers all notification models with the admin site:
- QueuedNotification (with a requeue action for failed records)
- NotificationTemplate
- UserNotificationPreference
- Notification
- DeviceToken
"""

from django.contrib import admin, messages
from django.utils import timezone

from notifications.models import (
    DeviceToken,
    Notification,
    NotificationTemplate,
    QueuedNotification,
    QueueStatus,
    UserNotificationPreference,
)


@admin.register(QueuedNotification)
class QueuedNotificationAdmin(admin.ModelAdmin):
    """
    Admin configuration for QueuedNotification.

    Read-mostly view of the delivery queue for support. Failed records can
    be requeued: a fresh pending copy is created and the failed record is
    kept for the audit trail.
    """

    list_display = [
        "id",
        "channel",
        "recipient",
        "title",
        "status",
        "priority",
        "attempts",
        "process_after",
        "created_at",
    ]
    list_filter = ["status", "channel", "category", "source", "created_at"]
    search_fields = ["title", "recipient__email", "source_id", "address"]
    ordering = ["-created_at"]
    readonly_fields = [
        "status",
        "attempts",
        "sent_at",
        "failed_at",
        "last_error",
        "provider_response",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["recipient"]
    actions = ["requeue"]

    @admin.action(description="Requeue selected failed notifications")
    def requeue(self, request, queryset):
        now = timezone.now()
        copies = [
            QueuedNotification(
                recipient_id=record.recipient_id,
                channel=record.channel,
                priority=record.priority,
                title=record.title,
                message=record.message,
                payload=record.payload,
                level=record.level,
                address=record.address,
                category=record.category,
                max_attempts=record.max_attempts,
                process_after=now,
                source=record.source,
                source_id=record.source_id,
            )
            for record in queryset.filter(status=QueueStatus.FAILED)
        ]
        QueuedNotification.objects.bulk_create(copies)

        skipped = queryset.count() - len(copies)
        self.message_user(request, f"Requeued {len(copies)} notifications.")
        if skipped:
            self.message_user(
                request,
                f"Skipped {skipped} notifications that have not failed.",
                level=messages.WARNING,
            )


@admin.register(NotificationTemplate)
class NotificationTemplateAdmin(admin.ModelAdmin):
    """
    Admin configuration for NotificationTemplate.

    Templates use {{name}} placeholders; each channel has its own content.
    """

    list_display = ["key", "name", "category", "channels", "priority", "is_enabled"]
    list_filter = ["is_enabled", "category"]
    search_fields = ["key", "name"]
    ordering = ["key"]
    fieldsets = (
        (
            None,
            {
                "fields": ("key", "name", "category", "channels", "priority", "is_enabled"),
            },
        ),
        (
            "Push",
            {
                "fields": ("push_title", "push_body"),
            },
        ),
        (
            "Email",
            {
                "fields": ("email_subject", "email_html", "email_text"),
            },
        ),
        (
            "SMS",
            {
                "fields": ("sms_text",),
            },
        ),
        (
            "In-app",
            {
                "fields": ("in_app_title", "in_app_message"),
            },
        ),
    )


@admin.register(UserNotificationPreference)
class UserNotificationPreferenceAdmin(admin.ModelAdmin):
    """Admin configuration for UserNotificationPreference."""

    list_display = [
        "user",
        "push_enabled",
        "email_enabled",
        "sms_enabled",
        "quiet_hours_start",
        "quiet_hours_end",
        "timezone",
    ]
    list_filter = ["push_enabled", "email_enabled", "sms_enabled", "promotional_enabled"]
    search_fields = ["user__email", "phone_number"]
    raw_id_fields = ["user"]


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """
    Admin configuration for Notification.

    Provides read-only view of in-app notifications for debugging and support.
    """

    list_display = ["id", "recipient", "title", "level", "is_read", "created_at"]
    list_filter = ["is_read", "level", "created_at"]
    search_fields = ["title", "recipient__email"]
    ordering = ["-created_at"]
    readonly_fields = [
        "recipient",
        "title",
        "message",
        "level",
        "data",
        "queue_item",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["recipient"]


@admin.register(DeviceToken)
class DeviceTokenAdmin(admin.ModelAdmin):
    """Admin configuration for DeviceToken."""

    list_display = ["user", "platform", "is_active", "updated_at"]
    list_filter = ["platform", "is_active"]
    search_fields = ["user__email", "token"]
    raw_id_fields = ["user"]
