"""
Tests for preference resolution and quiet hours.

Test Classes:
    TestQuietHours: is_quiet_time / next_delivery_time at fixed instants
    TestChannelAndCategory: Opt-in checks
    TestPreferenceResolver: Read-through creation and caching
    TestPreferenceService: Validated updates
"""

import datetime
from zoneinfo import ZoneInfo

import pytest
from django.db import IntegrityError
from django.db.models.query import QuerySet

from core.exceptions import ValidationError
from notifications.preferences import PreferenceResolver, ResolvedPreferences, get_timezone
from notifications.tests.factories import UserFactory, UserNotificationPreferenceFactory

IST = ZoneInfo("Asia/Kolkata")


def prefs(start=datetime.time(22, 0), end=datetime.time(8, 0), tz="Asia/Kolkata", **flags):
    values = {
        "user_id": 1,
        "push_enabled": True,
        "email_enabled": True,
        "sms_enabled": False,
        "booking_enabled": True,
        "payment_enabled": True,
        "system_enabled": True,
        "promotional_enabled": False,
        "quiet_hours_start": start,
        "quiet_hours_end": end,
        "timezone": tz,
    }
    values.update(flags)
    return ResolvedPreferences(**values)


def ist(hour, minute=0, second=0, day=15):
    return datetime.datetime(2024, 6, day, hour, minute, second, tzinfo=IST)


class TestQuietHours:
    @pytest.mark.parametrize(
        "moment, expected",
        [
            (ist(23, 0), True),
            (ist(2, 0), True),
            (ist(22, 0), True),
            (ist(8, 0), True),
            (ist(8, 0, 59), True),
            (ist(8, 1), False),
            (ist(12, 0), False),
            (ist(21, 59), False),
        ],
    )
    def test_window_wrapping_midnight(self, moment, expected):
        assert prefs().is_quiet_time(moment) is expected

    @pytest.mark.parametrize(
        "moment, expected",
        [
            (ist(13, 0), True),
            (ist(14, 30), True),
            (ist(12, 59), False),
            (ist(23, 0), False),
        ],
    )
    def test_same_day_window(self, moment, expected):
        window = prefs(start=datetime.time(13, 0), end=datetime.time(15, 0))
        assert window.is_quiet_time(moment) is expected

    def test_compared_in_users_timezone(self):
        # 17:30 UTC is 23:00 in Kolkata
        moment = datetime.datetime(2024, 6, 15, 17, 30, tzinfo=datetime.timezone.utc)

        assert prefs(tz="Asia/Kolkata").is_quiet_time(moment)
        assert not prefs(tz="UTC").is_quiet_time(moment)

    def test_disabled_when_a_bound_is_missing(self):
        assert not prefs(start=None).is_quiet_time(ist(23, 0))
        assert not prefs(end=None).is_quiet_time(ist(23, 0))

    def test_next_delivery_after_midnight_is_today(self):
        assert prefs().next_delivery_time(ist(2, 0)) == ist(8, 0)

    def test_next_delivery_before_midnight_is_tomorrow(self):
        assert prefs().next_delivery_time(ist(23, 0)) == ist(8, 0, day=16)

    def test_next_delivery_never_in_the_past(self):
        moment = ist(8, 0, 30)

        assert prefs().next_delivery_time(moment) == moment

    def test_unknown_timezone_falls_back_to_default(self, settings):
        settings.NOTIFICATION_DEFAULT_TIMEZONE = "Asia/Kolkata"

        assert get_timezone("Mars/Olympus") == IST
        assert prefs(tz="Mars/Olympus").is_quiet_time(ist(23, 0))


class TestChannelAndCategory:
    def test_in_app_always_enabled(self):
        p = prefs(push_enabled=False, email_enabled=False, sms_enabled=False)

        assert p.is_channel_enabled("in_app")

    def test_channel_flags(self):
        p = prefs(push_enabled=False, sms_enabled=True)

        assert not p.is_channel_enabled("push")
        assert p.is_channel_enabled("email")
        assert p.is_channel_enabled("sms")
        assert not p.is_channel_enabled("fax")

    def test_category_flags(self):
        p = prefs(booking_enabled=False)

        assert not p.is_category_enabled("booking")
        assert p.is_category_enabled("payment")
        assert not p.is_category_enabled("promotional")

    def test_uncategorized_always_allowed(self):
        p = prefs(booking_enabled=False, payment_enabled=False)

        assert p.is_category_enabled("")
        assert p.is_category_enabled(None)


class TestPreferenceResolver:
    def test_creates_defaults_on_first_access(self, db):
        from notifications.models import UserNotificationPreference

        user = UserFactory()

        resolved = PreferenceResolver.resolve(user)

        assert UserNotificationPreference.objects.filter(user=user).exists()
        assert resolved.push_enabled
        assert resolved.email_enabled
        assert not resolved.sms_enabled
        assert resolved.quiet_hours_start == datetime.time(22, 0)
        assert resolved.quiet_hours_end == datetime.time(8, 0)
        assert resolved.timezone == "Asia/Kolkata"

    def test_existing_row_is_used(self, db):
        pref = UserNotificationPreferenceFactory(sms_enabled=True, phone_number="+91980")

        resolved = PreferenceResolver.resolve(pref.user)

        assert resolved.sms_enabled
        assert resolved.phone_number == "+91980"

    def test_concurrent_first_access_reads_winning_row(self, db, mocker):
        from notifications.models import UserNotificationPreference

        pref = UserNotificationPreferenceFactory(sms_enabled=True)
        # Another request inserted the row between our lookup and insert
        mocker.patch.object(
            QuerySet, "get_or_create", side_effect=IntegrityError("duplicate key value")
        )

        result = PreferenceResolver.get_or_create_model(pref.user)

        assert result.pk == pref.pk
        assert result.sms_enabled
        assert UserNotificationPreference.objects.filter(user=pref.user).count() == 1

    def test_result_is_cached_until_invalidated(self, db):
        pref = UserNotificationPreferenceFactory(push_enabled=True)
        PreferenceResolver.resolve(pref.user)

        pref.push_enabled = False
        pref.save()

        assert PreferenceResolver.resolve(pref.user).push_enabled
        assert not PreferenceResolver.resolve(pref.user, use_cache=False).push_enabled

        PreferenceResolver.invalidate_cache(pref.user.pk)
        assert not PreferenceResolver.resolve(pref.user).push_enabled


class TestPreferenceService:
    def test_update_persists_and_invalidates_cache(self, user):
        from notifications.services import PreferenceService

        PreferenceResolver.resolve(user)

        pref = PreferenceService.update_preferences(
            user,
            sms_enabled=True,
            quiet_hours_start=None,
            timezone="Europe/London",
        )

        assert pref.sms_enabled
        resolved = PreferenceResolver.resolve(user)
        assert resolved.sms_enabled
        assert resolved.timezone == "Europe/London"

    def test_rejects_unknown_field(self, user):
        from notifications.services import PreferenceService

        with pytest.raises(ValidationError) as exc_info:
            PreferenceService.update_preferences(user, all_disabled=True)

        assert "all_disabled" in exc_info.value.details

    def test_rejects_unknown_timezone(self, user):
        from notifications.services import PreferenceService

        with pytest.raises(ValidationError) as exc_info:
            PreferenceService.update_preferences(user, timezone="Mars/Olympus")

        assert exc_info.value.error_code == "INVALID_TIMEZONE"
