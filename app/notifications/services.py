"""
Notification service layer.

This module is the public entry point for other subsystems (bookings,
payments) and for the API views.

Services:
    NotificationService: Enqueue, template sends, booking/payment wrappers
    InAppNotificationService: The user's in-app feed (list, read, delete)
    PreferenceService: User delivery preference management
    DeviceService: Push device token registration

Design Principles:
    - Services are stateless (use class methods)
    - Expected outcomes (channel blocked, template disabled) return
      ServiceResult.failure() with an error_code; they are not errors
    - Persistence faults raise DatastoreError; missing in-app records raise
      NotFoundError
    - Immediate dispatch is submitted to Celery after the enqueuing
      transaction commits; if submission fails the periodic drain delivers
      the record instead

Usage:
    from notifications.services import NotificationService

    result = NotificationService.enqueue(
        recipient=user,
        channel="push",
        title="Check-in reminder",
        message="Your stay starts tomorrow",
        source="booking",
        source_id=str(booking.id),
    )
    if not result.success and result.error_code == "PREFERENCE_BLOCKED":
        ...

    NotificationService.send_from_template(
        "booking_confirmed", user, {"hotelName": "Sea View"}
    )
"""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.html import format_html

from core.exceptions import NotFoundError, ValidationError
from core.helpers import calculate_pagination
from core.services import BaseService, ServiceResult
from notifications.exceptions import datastore_errors
from notifications.models import (
    Channel,
    DevicePlatform,
    DeviceToken,
    Notification,
    NotificationCategory,
    NotificationLevel,
    NotificationTemplate,
    QueuedNotification,
    UserNotificationPreference,
)
from notifications.preferences import PreferenceResolver
from notifications.rendering import render_template

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any
    from uuid import UUID

    from django.contrib.auth.models import AbstractBaseUser


class NotificationService(BaseService):
    """
    Service for queueing notifications.

    Methods:
        enqueue: Queue one notification on one channel
        send_from_template: Queue a template on every channel it lists
        send_booking_confirmation: In-app + email for a confirmed booking
        send_payment_reminder: In-app + email for a due invoice
    """

    @classmethod
    def enqueue(
        cls,
        recipient: AbstractBaseUser,
        channel: str,
        title: str,
        message: str,
        priority: int = 5,
        payload: Mapping[str, Any] | None = None,
        scheduled_at: datetime.datetime | None = None,
        address: str = "",
        level: str = NotificationLevel.INFO,
        category: str = "",
        source: str = "",
        source_id: str = "",
    ) -> ServiceResult[QueuedNotification]:
        """
        Queue a notification for delivery.

        Implementation:
            1. Validate the channel
            2. Resolve preferences (created with defaults on first use)
            3. Channel or category disabled -> failure, nothing stored
            4. Work out process_after: explicit schedule (never in the past),
               end of quiet hours (not for in-app), or now
            5. Store the record
            6. Due now -> submit dispatch_notification after commit

        Args:
            recipient: User receiving the notification
            channel: push, email, sms or in_app
            title: Title / email subject
            message: Body / email HTML
            priority: Lower is dispatched first (default 5)
            payload: Arbitrary data passed through to the channel
            scheduled_at: Deliver no earlier than this time
            address: Push token / email / phone override
            level: In-app notification type
            category: Preference category (booking, payment, ...)
            source/source_id: Provenance of the request

        Returns:
            ServiceResult with the QueuedNotification. Failure codes:
            INVALID_CHANNEL, PREFERENCE_BLOCKED, CATEGORY_BLOCKED

        Raises:
            DatastoreError: Preferences or the queue record could not be
                read or written
        """
        logger = cls.get_logger()

        if channel not in Channel.values:
            return ServiceResult.failure(
                f"Unknown notification channel: {channel}",
                error_code="INVALID_CHANNEL",
            )

        prefs = PreferenceResolver.resolve(recipient)

        if not prefs.is_channel_enabled(channel):
            logger.info(
                f"Notification blocked by user preferences: {channel} for user {recipient.pk}"
            )
            return ServiceResult.failure(
                f"Channel {channel} is disabled for this user",
                error_code="PREFERENCE_BLOCKED",
            )

        if not prefs.is_category_enabled(category):
            logger.info(
                f"Notification blocked by category preference: {category} for user {recipient.pk}"
            )
            return ServiceResult.failure(
                f"Category {category} is disabled for this user",
                error_code="CATEGORY_BLOCKED",
            )

        now = timezone.now()
        if scheduled_at is not None:
            process_after = max(scheduled_at, now)
        elif channel != Channel.IN_APP and prefs.is_quiet_time(now):
            process_after = prefs.next_delivery_time(now)
            logger.info(
                f"Quiet hours for user {recipient.pk}, deferring {channel} "
                f"notification until {process_after.isoformat()}"
            )
        else:
            process_after = now

        with datastore_errors("queue notification"):
            record = QueuedNotification.objects.create(
                recipient=recipient,
                channel=channel,
                priority=priority,
                title=title or "",
                message=message or "",
                payload=dict(payload or {}),
                level=level,
                address=address or "",
                category=category or "",
                scheduled_at=scheduled_at,
                process_after=process_after,
                source=source or "",
                source_id=str(source_id or ""),
            )

        logger.info(
            f"Queued {channel} notification {record.id} for user {recipient.pk}",
            extra={
                "notification_id": str(record.id),
                "channel": channel,
                "priority": priority,
                "source": source,
            },
        )

        if process_after <= now:
            cls._submit_dispatch(record)

        return ServiceResult.success(record)

    @classmethod
    def _submit_dispatch(cls, record: QueuedNotification) -> None:
        """Hand the record to a Celery worker once the row is committed."""
        # Import tasks here to avoid circular imports
        from notifications import tasks

        notification_id = str(record.id)

        def submit() -> None:
            try:
                tasks.dispatch_notification.delay(notification_id)
            except Exception:
                # The record is already stored; the next drain delivers it
                cls.get_logger().warning(
                    f"Could not submit dispatch for {notification_id}, "
                    "leaving it for the queue drain",
                    exc_info=True,
                )

        transaction.on_commit(submit)

    @classmethod
    def _enqueue_isolated(cls, label: str, **kwargs) -> ServiceResult[QueuedNotification]:
        """
        enqueue() inside its own savepoint.

        Any failure, expected or not, is logged and returned as a
        ServiceResult so sibling channels of the same event still go out.
        """
        try:
            with cls.atomic():
                return cls.enqueue(**kwargs)
        except Exception as e:
            return cls.handle_exception(e, label)

    @classmethod
    def send_from_template(
        cls,
        template_key: str,
        recipient: AbstractBaseUser,
        variables: Mapping[str, Any] | None = None,
    ) -> ServiceResult[dict[str, ServiceResult]]:
        """
        Queue a template on every channel it lists.

        Channels are rendered and enqueued one after another, each in its
        own savepoint, and are filtered by their own preference and
        quiet-hours rules. A failure on one channel never stops the rest. Variables are stored as
        the payload; `source` / `sourceId` variables set the provenance.

        Returns:
            ServiceResult with {channel: ServiceResult} per channel, or a
            TEMPLATE_UNAVAILABLE failure when the template is missing or
            disabled (nothing is queued)
        """
        variables = dict(variables or {})

        with datastore_errors("load notification template"):
            template = NotificationTemplate.objects.filter(key=template_key).first()

        if template is None or not template.is_enabled:
            cls.get_logger().info(f"Template not found or disabled: {template_key}")
            return ServiceResult.failure(
                f"Template not found or disabled: {template_key}",
                error_code="TEMPLATE_UNAVAILABLE",
            )

        source = str(variables.get("source") or template_key)
        source_id = str(variables.get("sourceId") or variables.get("source_id") or "")

        results: dict[str, ServiceResult] = {}
        for channel in template.channels:
            label = f"Template {template_key} on {channel}"
            try:
                content = render_template(template, channel, variables)
            except ValueError as e:
                results[channel] = cls.handle_exception(e, label)
                continue

            results[channel] = cls._enqueue_isolated(
                label,
                recipient=recipient,
                channel=channel,
                title=content.title,
                message=content.body,
                priority=template.priority,
                payload=variables,
                category=template.category,
                source=source,
                source_id=source_id,
            )

        queued = sum(1 for result in results.values() if result.success)
        cls.get_logger().info(
            f"Template {template_key} for user {recipient.pk}: "
            f"{queued}/{len(results)} channels queued"
        )
        return ServiceResult.success(results)

    @classmethod
    def send_booking_confirmation(
        cls,
        recipient: AbstractBaseUser,
        booking: Mapping[str, Any],
    ) -> dict[str, ServiceResult]:
        """
        Notify a guest that their booking is confirmed.

        Args:
            recipient: The guest
            booking: Booking fields from the booking subsystem: id,
                hotel_name, check_in_date, check_out_date, room_name,
                total_amount and optionally currency (default "₹")

        Returns:
            {"in_app": ServiceResult, "email": ServiceResult}
        """
        booking_id = str(booking.get("id", ""))
        hotel_name = booking.get("hotel_name", "")
        check_in = booking.get("check_in_date", "")
        currency = booking.get("currency", "₹")

        html = format_html(
            "<h2>Booking Confirmed!</h2>"
            "<p>Dear {},</p>"
            "<p>Your booking at <strong>{}</strong> has been confirmed.</p>"
            "<p><strong>Details:</strong></p>"
            "<ul>"
            "<li>Check-in: {}</li>"
            "<li>Check-out: {}</li>"
            "<li>Room: {}</li>"
            "<li>Total Amount: {}{}</li>"
            "</ul>"
            "<p>Thank you for choosing our service!</p>",
            cls._display_name(recipient),
            hotel_name,
            check_in,
            booking.get("check_out_date", ""),
            booking.get("room_name", ""),
            currency,
            booking.get("total_amount", ""),
        )

        common = {
            "recipient": recipient,
            "category": NotificationCategory.BOOKING,
            "payload": {"booking_id": booking_id},
            "source": "booking",
            "source_id": booking_id,
        }
        return {
            "in_app": cls._enqueue_isolated(
                f"Booking confirmation {booking_id} in-app",
                channel=Channel.IN_APP,
                title="Booking Confirmed",
                message=(
                    f"Your booking at {hotel_name} has been confirmed for {check_in}"
                ),
                level=NotificationLevel.SUCCESS,
                **common,
            ),
            "email": cls._enqueue_isolated(
                f"Booking confirmation {booking_id} email",
                channel=Channel.EMAIL,
                title="Booking Confirmation",
                message=str(html),
                **common,
            ),
        }

    @classmethod
    def send_payment_reminder(
        cls,
        recipient: AbstractBaseUser,
        invoice: Mapping[str, Any],
    ) -> dict[str, ServiceResult]:
        """
        Remind a user that an invoice is due.

        Args:
            recipient: The payer
            invoice: Invoice fields from the payment subsystem: id,
                total_amount, due_date and optionally currency (default "₹")

        Returns:
            {"in_app": ServiceResult, "email": ServiceResult}
        """
        invoice_id = str(invoice.get("id", ""))
        amount = invoice.get("total_amount", "")
        due_date = invoice.get("due_date", "")
        currency = invoice.get("currency", "₹")

        html = format_html(
            "<h2>Payment Reminder</h2>"
            "<p>Dear {},</p>"
            "<p>This is a reminder that your payment of <strong>{}{}</strong> "
            "is due on {}.</p>"
            "<p>Please make the payment to avoid any inconvenience.</p>"
            "<p>Thank you!</p>",
            cls._display_name(recipient),
            currency,
            amount,
            due_date,
        )

        common = {
            "recipient": recipient,
            "category": NotificationCategory.PAYMENT,
            "payload": {"invoice_id": invoice_id},
            "source": "payment",
            "source_id": invoice_id,
        }
        return {
            "in_app": cls._enqueue_isolated(
                f"Payment reminder {invoice_id} in-app",
                channel=Channel.IN_APP,
                title="Payment Reminder",
                message=f"Payment of {currency}{amount} is due on {due_date}",
                level=NotificationLevel.WARNING,
                **common,
            ),
            "email": cls._enqueue_isolated(
                f"Payment reminder {invoice_id} email",
                channel=Channel.EMAIL,
                title="Payment Reminder",
                message=str(html),
                **common,
            ),
        }

    @staticmethod
    def _display_name(user: AbstractBaseUser) -> str:
        full_name = getattr(user, "get_full_name", lambda: "")()
        return full_name or user.get_username()


class InAppNotificationService(BaseService):
    """
    Service for the in-app notification feed.

    Every operation is scoped to the owner: another user's notification is
    reported as not found.

    Methods:
        list_notifications: Paginated feed with total and unread counts
        unread_count: Number of unread notifications
        mark_as_read: Mark one notification as read
        mark_all_as_read: Mark every unread notification as read
        delete_notification: Delete one notification
        create_from_queue: Feed entry for a dispatched in_app queue record
    """

    @classmethod
    def list_notifications(
        cls,
        user: AbstractBaseUser,
        page: int = 1,
        page_size: int = 10,
    ) -> dict[str, Any]:
        """
        Return one page of the user's feed, newest first.

        The three queries (page, total, unread) are not run in one snapshot;
        counts can differ from the page by concurrent writes.

        Returns:
            {"results": [Notification], "total": int, "unread_count": int,
             "page": int, "page_size": int, "total_pages": int}
        """
        queryset = Notification.objects.filter(recipient=user).order_by("-created_at")

        with datastore_errors("list notifications"):
            total = queryset.count()
            unread_count = queryset.filter(is_read=False).count()
            pagination = calculate_pagination(total, page, page_size)
            offset = pagination["offset"]
            results = list(queryset[offset : offset + pagination["per_page"]])

        return {
            "results": results,
            "total": total,
            "unread_count": unread_count,
            "page": pagination["page"],
            "page_size": pagination["per_page"],
            "total_pages": pagination["total_pages"],
        }

    @classmethod
    def unread_count(cls, user: AbstractBaseUser) -> int:
        with datastore_errors("count unread notifications"):
            return Notification.objects.filter(recipient=user, is_read=False).count()

    @classmethod
    def _get_owned(
        cls, user: AbstractBaseUser, notification_id: UUID | str
    ) -> Notification:
        try:
            with datastore_errors("load notification"):
                return Notification.objects.get(id=notification_id, recipient=user)
        except (Notification.DoesNotExist, DjangoValidationError) as e:
            raise NotFoundError(
                "Notification not found",
                error_code="NOTIFICATION_NOT_FOUND",
                details={"notification_id": str(notification_id)},
            ) from e

    @classmethod
    def mark_as_read(
        cls, user: AbstractBaseUser, notification_id: UUID | str
    ) -> Notification:
        """
        Mark one of the user's notifications as read (idempotent).

        Raises:
            NotFoundError: Missing, or owned by another user
        """
        notification = cls._get_owned(user, notification_id)
        if not notification.is_read:
            notification.is_read = True
            with datastore_errors("mark notification as read"):
                notification.save(update_fields=["is_read", "updated_at"])
            cls.get_logger().debug(f"Marked notification {notification.id} as read")
        return notification

    @classmethod
    def mark_all_as_read(cls, user: AbstractBaseUser) -> int:
        """Mark all of the user's unread notifications as read; returns the count."""
        with datastore_errors("mark notifications as read"):
            count = Notification.objects.filter(recipient=user, is_read=False).update(
                is_read=True, updated_at=timezone.now()
            )

        cls.get_logger().info(f"Marked {count} notifications as read for user {user.pk}")
        return count

    @classmethod
    def delete_notification(
        cls, user: AbstractBaseUser, notification_id: UUID | str
    ) -> None:
        """
        Delete one of the user's notifications.

        Raises:
            NotFoundError: Missing, or owned by another user
        """
        notification = cls._get_owned(user, notification_id)
        with datastore_errors("delete notification"):
            notification.delete()
        cls.get_logger().info(f"Deleted notification {notification_id} for user {user.pk}")

    @classmethod
    def create_from_queue(cls, record: QueuedNotification) -> Notification:
        """
        Create the feed entry for a dispatched in_app queue record.

        Idempotent per queue record: a retried dispatch returns the entry
        created by the earlier attempt.
        """
        defaults = {
            "recipient_id": record.recipient_id,
            "title": record.title,
            "message": record.message,
            "level": record.level or NotificationLevel.INFO,
            "data": record.payload or {},
        }
        try:
            with transaction.atomic():
                notification, created = Notification.objects.get_or_create(
                    queue_item=record, defaults=defaults
                )
        except IntegrityError:
            notification = Notification.objects.get(queue_item=record)
            created = False

        if created:
            cls.get_logger().info(
                f"Created in-app notification {notification.id} for user {record.recipient_id}"
            )
        return notification


class PreferenceService(BaseService):
    """
    Service for user notification preference management.

    Methods:
        get_preferences: The user's preference row (created with defaults)
        update_preferences: Partial update, invalidates the resolver cache
    """

    UPDATABLE_FIELDS = (
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
    )

    @classmethod
    def get_preferences(cls, user: AbstractBaseUser) -> UserNotificationPreference:
        return PreferenceResolver.get_or_create_model(user)

    @classmethod
    def update_preferences(
        cls, user: AbstractBaseUser, **changes
    ) -> UserNotificationPreference:
        """
        Apply `changes` to the user's preferences.

        Raises:
            ValidationError: Unknown field or invalid timezone name
            DatastoreError: The row could not be written
        """
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        unknown = set(changes) - set(cls.UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "Unknown preference fields",
                details={field: ["Not an updatable preference"] for field in sorted(unknown)},
            )

        if "timezone" in changes:
            try:
                ZoneInfo(changes["timezone"])
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ValidationError(
                    f"Unknown timezone {changes['timezone']!r}",
                    error_code="INVALID_TIMEZONE",
                    details={"timezone": ["Not a valid IANA timezone name"]},
                ) from e

        pref = PreferenceResolver.get_or_create_model(user)
        for field, value in changes.items():
            setattr(pref, field, value)

        with datastore_errors("update notification preferences"):
            pref.save(update_fields=[*changes, "updated_at"])

        PreferenceResolver.invalidate_cache(user.pk)
        cls.get_logger().info(
            f"Updated notification preferences for user {user.pk}: {sorted(changes)}"
        )
        return pref


class DeviceService(BaseService):
    """
    Service for push device registration.

    Methods:
        register_device: Register (or move) a token to the user
        unregister_device: Deactivate one of the user's tokens
    """

    @classmethod
    def register_device(
        cls,
        user: AbstractBaseUser,
        token: str,
        platform: str = DevicePlatform.ANDROID,
    ) -> DeviceToken:
        """
        Register `token` for `user`.

        A token already registered to another account (device changed
        hands) is moved to this user and reactivated.
        """
        with datastore_errors("register device token"):
            device, created = DeviceToken.objects.update_or_create(
                token=token,
                defaults={"user": user, "platform": platform, "is_active": True},
            )

        action = "Registered" if created else "Refreshed"
        cls.get_logger().info(f"{action} {platform} device token for user {user.pk}")
        return device

    @classmethod
    def unregister_device(cls, user: AbstractBaseUser, token: str) -> None:
        """
        Deactivate one of the user's device tokens.

        Raises:
            NotFoundError: The token is not registered to this user
        """
        with datastore_errors("unregister device token"):
            updated = DeviceToken.objects.filter(user=user, token=token).update(
                is_active=False, updated_at=timezone.now()
            )

        if not updated:
            raise NotFoundError(
                "Device token not found",
                error_code="DEVICE_NOT_FOUND",
            )
        cls.get_logger().info(f"Unregistered device token for user {user.pk}")
