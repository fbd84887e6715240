"""
Integration tests for notification services.

Test Classes:
    TestEnqueue: Preference filtering, scheduling and dispatch submission
    TestSendFromTemplate: Multi-channel template sends
    TestEventWrappers: Booking confirmation and payment reminder
    TestInAppNotificationService: Feed list, read state and deletion
    TestDeviceService: Push token registration
"""

import datetime
from zoneinfo import ZoneInfo

import pytest
from django.db import IntegrityError
from django.db.models.query import QuerySet
from django.utils import timezone

from core.exceptions import NotFoundError
from notifications.models import Notification, QueuedNotification, QueueStatus
from notifications.services import (
    DeviceService,
    InAppNotificationService,
    NotificationService,
)
from notifications.tests.factories import (
    DeviceTokenFactory,
    NotificationFactory,
    NotificationTemplateFactory,
    QueuedNotificationFactory,
    UserFactory,
    UserNotificationPreferenceFactory,
)

IST = ZoneInfo("Asia/Kolkata")


class TestEnqueue:
    def test_queues_pending_record(self, user, mock_dispatch_task):
        result = NotificationService.enqueue(
            recipient=user,
            channel="email",
            title="Invoice",
            message="<p>Due soon</p>",
            priority=2,
            payload={"invoice_id": "I1"},
            source="payment",
            source_id="I1",
        )

        assert result.success
        record = result.data
        assert record.status == QueueStatus.PENDING
        assert record.attempts == 0
        assert record.max_attempts == 4
        assert record.priority == 2
        assert record.payload == {"invoice_id": "I1"}
        assert record.source == "payment"
        assert record.source_id == "I1"
        assert record.process_after <= timezone.now()

    def test_dispatch_submitted_after_commit(
        self, user, mock_dispatch_task, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            result = NotificationService.enqueue(
                recipient=user, channel="in_app", title="Hi", message="Hello"
            )

        assert len(callbacks) == 1
        mock_dispatch_task.assert_called_once_with(str(result.data.id))

    def test_broker_failure_leaves_record_for_drain(
        self, user, mock_dispatch_task, django_capture_on_commit_callbacks
    ):
        mock_dispatch_task.side_effect = ConnectionError("broker down")

        with django_capture_on_commit_callbacks(execute=True):
            result = NotificationService.enqueue(
                recipient=user, channel="in_app", title="Hi", message="Hello"
            )

        assert result.success
        record = QueuedNotification.objects.get(id=result.data.id)
        assert record.status == QueueStatus.PENDING

    def test_unknown_channel(self, user):
        result = NotificationService.enqueue(
            recipient=user, channel="fax", title="Hi", message="Hello"
        )

        assert not result.success
        assert result.error_code == "INVALID_CHANNEL"
        assert not QueuedNotification.objects.exists()

    def test_disabled_channel_is_blocked(self, db, mock_dispatch_task):
        pref = UserNotificationPreferenceFactory(sms_enabled=False)

        result = NotificationService.enqueue(
            recipient=pref.user, channel="sms", title="Hi", message="Hello"
        )

        assert not result.success
        assert result.error_code == "PREFERENCE_BLOCKED"
        assert not QueuedNotification.objects.exists()

    def test_in_app_ignores_channel_flags(self, db, mock_dispatch_task):
        pref = UserNotificationPreferenceFactory(
            push_enabled=False, email_enabled=False, sms_enabled=False
        )

        result = NotificationService.enqueue(
            recipient=pref.user, channel="in_app", title="Hi", message="Hello"
        )

        assert result.success

    def test_disabled_category_is_blocked(self, db, mock_dispatch_task):
        pref = UserNotificationPreferenceFactory(promotional_enabled=False)

        result = NotificationService.enqueue(
            recipient=pref.user,
            channel="email",
            title="Sale",
            message="50% off",
            category="promotional",
        )

        assert not result.success
        assert result.error_code == "CATEGORY_BLOCKED"

    def test_first_enqueue_creates_default_preferences(self, db, mock_dispatch_task):
        from notifications.models import UserNotificationPreference

        user = UserFactory()

        NotificationService.enqueue(recipient=user, channel="in_app", title="Hi", message="")

        assert UserNotificationPreference.objects.filter(user=user).exists()

    def test_quiet_hours_defer_external_channels(
        self, db, mock_dispatch_task, mocker, django_capture_on_commit_callbacks
    ):
        pref = UserNotificationPreferenceFactory(
            quiet_hours_start=datetime.time(22, 0),
            quiet_hours_end=datetime.time(8, 0),
            timezone="Asia/Kolkata",
        )
        late_evening = datetime.datetime(2024, 6, 15, 23, 0, tzinfo=IST)
        mocker.patch("django.utils.timezone.now", return_value=late_evening)

        with django_capture_on_commit_callbacks(execute=True):
            result = NotificationService.enqueue(
                recipient=pref.user, channel="push", title="Hi", message="Hello"
            )

        assert result.success
        assert result.data.process_after == datetime.datetime(2024, 6, 16, 8, 0, tzinfo=IST)
        mock_dispatch_task.assert_not_called()

    def test_quiet_hours_do_not_defer_in_app(
        self, db, mock_dispatch_task, mocker
    ):
        pref = UserNotificationPreferenceFactory(
            quiet_hours_start=datetime.time(22, 0),
            quiet_hours_end=datetime.time(8, 0),
        )
        late_evening = datetime.datetime(2024, 6, 15, 23, 0, tzinfo=IST)
        mocker.patch("django.utils.timezone.now", return_value=late_evening)

        result = NotificationService.enqueue(
            recipient=pref.user, channel="in_app", title="Hi", message="Hello"
        )

        assert result.data.process_after == late_evening

    def test_scheduled_notification_is_not_dispatched_now(
        self, user, mock_dispatch_task, django_capture_on_commit_callbacks
    ):
        later = timezone.now() + datetime.timedelta(hours=2)

        with django_capture_on_commit_callbacks(execute=True):
            result = NotificationService.enqueue(
                recipient=user,
                channel="email",
                title="Reminder",
                message="Check-in tomorrow",
                scheduled_at=later,
            )

        assert result.data.scheduled_at == later
        assert result.data.process_after == later
        mock_dispatch_task.assert_not_called()

    def test_past_schedule_is_clamped_to_now(self, user, mock_dispatch_task):
        before = timezone.now()

        result = NotificationService.enqueue(
            recipient=user,
            channel="email",
            title="Reminder",
            message="",
            scheduled_at=before - datetime.timedelta(days=1),
        )

        assert result.data.process_after >= before


class TestSendFromTemplate:
    def test_queues_each_channel_with_rendered_content(self, user, mock_dispatch_task):
        NotificationTemplateFactory(
            key="booking_confirmed",
            channels=["push", "email"],
            category="booking",
            priority=3,
        )

        result = NotificationService.send_from_template(
            "booking_confirmed",
            user,
            {"name": "Asha", "bookingId": "B42", "sourceId": "B42"},
        )

        assert result.success
        assert set(result.data) == {"push", "email"}
        assert all(r.success for r in result.data.values())

        push = QueuedNotification.objects.get(channel="push")
        assert push.title == "Hello Asha"
        assert push.message == "Your booking B42 is confirmed"
        assert push.priority == 3
        assert push.category == "booking"
        assert push.source == "booking_confirmed"
        assert push.source_id == "B42"
        assert push.payload["bookingId"] == "B42"

        email = QueuedNotification.objects.get(channel="email")
        assert email.title == "Booking B42"
        assert email.message == "<p>Dear Asha, see you soon.</p>"

    def test_missing_variables_stay_verbatim(self, user, mock_dispatch_task):
        NotificationTemplateFactory(key="partial", channels=["push"])

        NotificationService.send_from_template("partial", user, {"name": "Asha"})

        record = QueuedNotification.objects.get()
        assert record.message == "Your booking {{bookingId}} is confirmed"

    def test_source_variable_overrides_template_key(self, user, mock_dispatch_task):
        NotificationTemplateFactory(key="tpl", channels=["in_app"])

        NotificationService.send_from_template("tpl", user, {"source": "booking"})

        assert QueuedNotification.objects.get().source == "booking"

    def test_blocked_channel_does_not_affect_others(self, db, mock_dispatch_task):
        pref = UserNotificationPreferenceFactory(push_enabled=False)
        NotificationTemplateFactory(key="tpl", channels=["push", "email", "in_app"])

        result = NotificationService.send_from_template("tpl", pref.user, {})

        assert result.success
        assert result.data["push"].error_code == "PREFERENCE_BLOCKED"
        assert result.data["email"].success
        assert result.data["in_app"].success
        assert set(QueuedNotification.objects.values_list("channel", flat=True)) == {
            "email",
            "in_app",
        }

    def test_unknown_channel_in_template_is_isolated(self, user, mock_dispatch_task):
        NotificationTemplateFactory(key="tpl", channels=["fax", "email"])

        result = NotificationService.send_from_template("tpl", user, {})

        assert not result.data["fax"].success
        assert result.data["email"].success

    def test_unexpected_error_on_one_channel_does_not_stop_others(
        self, user, mock_dispatch_task, mocker
    ):
        NotificationTemplateFactory(key="tpl", channels=["push", "email"])
        enqueue = NotificationService.enqueue

        def fail_push(**kwargs):
            if kwargs["channel"] == "push":
                raise RuntimeError("renderer exploded")
            return enqueue(**kwargs)

        mocker.patch.object(NotificationService, "enqueue", side_effect=fail_push)

        result = NotificationService.send_from_template(
            "tpl", user, {"name": "Asha", "bookingId": "B1"}
        )

        assert result.success
        assert not result.data["push"].success
        assert result.data["push"].error_code == "RUNTIMEERROR"
        assert result.data["email"].success
        assert list(QueuedNotification.objects.values_list("channel", flat=True)) == [
            "email"
        ]

    def test_disabled_template(self, user):
        NotificationTemplateFactory(key="off", is_enabled=False)

        result = NotificationService.send_from_template("off", user, {})

        assert not result.success
        assert result.error_code == "TEMPLATE_UNAVAILABLE"
        assert not QueuedNotification.objects.exists()

    def test_missing_template(self, user):
        result = NotificationService.send_from_template("nope", user, {})

        assert not result.success
        assert result.error_code == "TEMPLATE_UNAVAILABLE"


class TestEventWrappers:
    def test_booking_confirmation(self, user, mock_dispatch_task):
        results = NotificationService.send_booking_confirmation(
            user,
            {
                "id": "BK-1",
                "hotel_name": "Sea <View>",
                "check_in_date": "2024-07-01",
                "check_out_date": "2024-07-03",
                "room_name": "Deluxe",
                "total_amount": "12000",
            },
        )

        assert results["in_app"].success
        assert results["email"].success

        in_app = QueuedNotification.objects.get(channel="in_app")
        assert in_app.title == "Booking Confirmed"
        assert in_app.level == "success"
        assert in_app.category == "booking"
        assert in_app.source == "booking"
        assert in_app.source_id == "BK-1"
        assert in_app.payload == {"booking_id": "BK-1"}
        assert "2024-07-01" in in_app.message

        email = QueuedNotification.objects.get(channel="email")
        assert email.title == "Booking Confirmation"
        assert "Dear Asha Rao" in email.message
        assert "Sea &lt;View&gt;" in email.message
        assert "₹12000" in email.message

    def test_payment_reminder(self, user, mock_dispatch_task):
        results = NotificationService.send_payment_reminder(
            user, {"id": "INV-7", "total_amount": "499", "due_date": "2024-07-10"}
        )

        assert results["in_app"].success
        assert results["email"].success

        in_app = QueuedNotification.objects.get(channel="in_app")
        assert in_app.level == "warning"
        assert in_app.category == "payment"
        assert in_app.message == "Payment of ₹499 is due on 2024-07-10"

        email = QueuedNotification.objects.get(channel="email")
        assert email.title == "Payment Reminder"
        assert "2024-07-10" in email.message

    def test_email_part_blocked_independently(self, db, mock_dispatch_task):
        pref = UserNotificationPreferenceFactory(email_enabled=False)

        results = NotificationService.send_payment_reminder(
            pref.user, {"id": "INV-7", "total_amount": "499", "due_date": "2024-07-10"}
        )

        assert results["in_app"].success
        assert results["email"].error_code == "PREFERENCE_BLOCKED"


class TestInAppNotificationService:
    def test_list_is_newest_first_with_counts(self, user, other_user):
        notifications = NotificationFactory.create_batch(3, recipient=user)
        NotificationFactory(recipient=user, is_read=True)
        NotificationFactory(recipient=other_user)
        Notification.objects.filter(id=notifications[0].id).update(
            created_at=timezone.now() + datetime.timedelta(minutes=5)
        )

        page = InAppNotificationService.list_notifications(user, page=1, page_size=2)

        assert page["total"] == 4
        assert page["unread_count"] == 3
        assert page["page"] == 1
        assert page["page_size"] == 2
        assert page["total_pages"] == 2
        assert len(page["results"]) == 2
        assert page["results"][0].id == notifications[0].id

    def test_page_past_end_is_empty(self, user):
        NotificationFactory(recipient=user)

        page = InAppNotificationService.list_notifications(user, page=5, page_size=10)

        assert page["results"] == []
        assert page["total"] == 1

    def test_mark_as_read(self, user):
        notification = NotificationFactory(recipient=user)

        result = InAppNotificationService.mark_as_read(user, notification.id)

        assert result.is_read
        notification.refresh_from_db()
        assert notification.is_read

    def test_mark_as_read_is_idempotent(self, user):
        notification = NotificationFactory(recipient=user, is_read=True)

        assert InAppNotificationService.mark_as_read(user, notification.id).is_read

    def test_cannot_mark_other_users_notification(self, user, other_user):
        notification = NotificationFactory(recipient=other_user)

        with pytest.raises(NotFoundError) as exc_info:
            InAppNotificationService.mark_as_read(user, notification.id)

        assert exc_info.value.error_code == "NOTIFICATION_NOT_FOUND"
        notification.refresh_from_db()
        assert not notification.is_read

    def test_invalid_id_is_not_found(self, user):
        with pytest.raises(NotFoundError):
            InAppNotificationService.mark_as_read(user, "not-a-uuid")

    def test_mark_all_as_read(self, user, other_user):
        NotificationFactory.create_batch(3, recipient=user)
        NotificationFactory(recipient=user, is_read=True)
        other = NotificationFactory(recipient=other_user)

        assert InAppNotificationService.mark_all_as_read(user) == 3
        assert InAppNotificationService.unread_count(user) == 0
        other.refresh_from_db()
        assert not other.is_read

    def test_delete(self, user):
        notification = NotificationFactory(recipient=user)

        InAppNotificationService.delete_notification(user, notification.id)

        assert not Notification.objects.filter(id=notification.id).exists()

    def test_delete_missing_raises(self, user, other_user):
        notification = NotificationFactory(recipient=other_user)

        with pytest.raises(NotFoundError):
            InAppNotificationService.delete_notification(user, notification.id)

        assert Notification.objects.filter(id=notification.id).exists()

    def test_create_from_queue_reads_entry_from_concurrent_dispatch(self, user, mocker):
        record = QueuedNotificationFactory(recipient=user, channel="in_app")
        existing = NotificationFactory(recipient=user, queue_item=record)
        mocker.patch.object(
            QuerySet, "get_or_create", side_effect=IntegrityError("duplicate key value")
        )

        notification = InAppNotificationService.create_from_queue(record)

        assert notification.id == existing.id
        assert Notification.objects.filter(queue_item=record).count() == 1


class TestDeviceService:
    def test_register_and_move_token(self, user, other_user):
        device = DeviceService.register_device(other_user, "tok-1", "ios")
        assert device.user == other_user

        moved = DeviceService.register_device(user, "tok-1", "android")

        assert moved.id == device.id
        assert moved.user == user
        assert moved.platform == "android"
        assert moved.is_active

    def test_register_reactivates_token(self, user):
        DeviceTokenFactory(user=user, token="tok-1", is_active=False)

        assert DeviceService.register_device(user, "tok-1").is_active

    def test_unregister(self, user):
        device = DeviceTokenFactory(user=user, token="tok-1")

        DeviceService.unregister_device(user, "tok-1")

        device.refresh_from_db()
        assert not device.is_active

    def test_unregister_other_users_token(self, user, other_user):
        DeviceTokenFactory(user=other_user, token="tok-1")

        with pytest.raises(NotFoundError):
            DeviceService.unregister_device(user, "tok-1")
