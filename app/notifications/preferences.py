"""
Notification preference resolution.

This module resolves a user's delivery preferences and answers the two
questions the enqueue path asks:
- Is this channel / category allowed for the user?
- Is it quiet time for the user right now, and if so, when does it end?

Design Decisions:
    - Read-through: a user without a preference row gets one created with
      the defaults on first access (never an error)
    - Concurrent first access for the same user is tolerated: the losing
      insert hits the primary key and re-reads the winner's row
    - TTL-based caching (5 min) of a frozen snapshot; writes through
      PreferenceService invalidate the entry immediately
    - Quiet hours are compared at minute resolution in the user's timezone.
      start < end is the interval [start, end]; start >= end wraps midnight
      as [start, 24:00) + [00:00, end]
    - In-app is always allowed and never deferred by quiet hours

Usage:
    from notifications.preferences import PreferenceResolver

    prefs = PreferenceResolver.resolve(user)
    if not prefs.is_channel_enabled("sms"):
        return  # blocked

    if prefs.is_quiet_time():
        process_after = prefs.next_delivery_time()
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from notifications.exceptions import DatastoreError

if TYPE_CHECKING:
    from uuid import UUID

    from django.contrib.auth.models import AbstractBaseUser

    from notifications.models import UserNotificationPreference

logger = logging.getLogger(__name__)


PREFERENCE_CACHE_PREFIX = "notif_pref"

CHANNEL_FLAGS = {
    "push": "push_enabled",
    "email": "email_enabled",
    "sms": "sms_enabled",
}

CATEGORY_FLAGS = {
    "booking": "booking_enabled",
    "payment": "payment_enabled",
    "promotional": "promotional_enabled",
    "system": "system_enabled",
}


def get_timezone(name: str) -> ZoneInfo:
    """
    Return the ZoneInfo for `name`, falling back to the default timezone.

    An unknown or empty name is logged and replaced rather than raised so a
    bad preference row cannot block delivery.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        fallback = settings.NOTIFICATION_DEFAULT_TIMEZONE
        logger.warning(f"Unknown timezone {name!r}, using {fallback}")
        return ZoneInfo(fallback)


@dataclass(frozen=True)
class ResolvedPreferences:
    """
    Snapshot of one user's preferences.

    Attributes:
        user_id: Owner of the preferences
        push_enabled/email_enabled/sms_enabled: Channel opt-in
        booking_enabled/payment_enabled/system_enabled/promotional_enabled:
            Category opt-in
        quiet_hours_start/quiet_hours_end: Local quiet-hour bounds (None = off)
        timezone: IANA timezone name
        phone_number: SMS destination
    """

    user_id: UUID | int
    push_enabled: bool
    email_enabled: bool
    sms_enabled: bool
    booking_enabled: bool
    payment_enabled: bool
    system_enabled: bool
    promotional_enabled: bool
    quiet_hours_start: datetime.time | None
    quiet_hours_end: datetime.time | None
    timezone: str
    phone_number: str = ""

    @classmethod
    def from_model(cls, pref: UserNotificationPreference) -> ResolvedPreferences:
        return cls(
            user_id=pref.user_id,
            push_enabled=pref.push_enabled,
            email_enabled=pref.email_enabled,
            sms_enabled=pref.sms_enabled,
            booking_enabled=pref.booking_enabled,
            payment_enabled=pref.payment_enabled,
            system_enabled=pref.system_enabled,
            promotional_enabled=pref.promotional_enabled,
            quiet_hours_start=pref.quiet_hours_start,
            quiet_hours_end=pref.quiet_hours_end,
            timezone=pref.timezone,
            phone_number=pref.phone_number,
        )

    def is_channel_enabled(self, channel: str) -> bool:
        """In-app is always enabled; unknown channels never are."""
        if channel == "in_app":
            return True
        flag = CHANNEL_FLAGS.get(channel)
        return bool(flag and getattr(self, flag))

    def is_category_enabled(self, category: str | None) -> bool:
        """Uncategorized notifications are always allowed."""
        if not category:
            return True
        flag = CATEGORY_FLAGS.get(category)
        return bool(flag is None or getattr(self, flag))

    @property
    def has_quiet_hours(self) -> bool:
        return self.quiet_hours_start is not None and self.quiet_hours_end is not None

    def local_now(self, now: datetime.datetime | None = None) -> datetime.datetime:
        return (now or timezone.now()).astimezone(get_timezone(self.timezone))

    def is_quiet_time(self, now: datetime.datetime | None = None) -> bool:
        """
        Whether `now` (default: current time) falls inside quiet hours.

        Both bounds are inclusive.
        """
        if not self.has_quiet_hours:
            return False

        current = self.local_now(now).time().replace(second=0, microsecond=0)
        start, end = self.quiet_hours_start, self.quiet_hours_end

        if start < end:
            return start <= current <= end
        return current >= start or current <= end

    def next_delivery_time(
        self, now: datetime.datetime | None = None
    ) -> datetime.datetime:
        """
        Next occurrence of quiet-hours-end at or after `now`.

        Today's end when it hasn't passed yet (e.g. 02:00 -> 08:00 today),
        otherwise tomorrow's (e.g. 23:00 -> 08:00 tomorrow). Never earlier
        than `now`.
        """
        now = now or timezone.now()
        local_now = self.local_now(now)
        tz = local_now.tzinfo
        end = self.quiet_hours_end

        candidate = datetime.datetime.combine(local_now.date(), end, tzinfo=tz)
        if end < local_now.time().replace(second=0, microsecond=0):
            candidate = datetime.datetime.combine(
                local_now.date() + datetime.timedelta(days=1), end, tzinfo=tz
            )
        return max(candidate, now)


class PreferenceResolver:
    """
    Read-through access to user preferences with TTL caching.
    """

    @staticmethod
    def _get_cache_key(user_id: UUID | int) -> str:
        return f"{PREFERENCE_CACHE_PREFIX}:{user_id}"

    @classmethod
    def resolve(
        cls,
        user: AbstractBaseUser,
        use_cache: bool = True,
    ) -> ResolvedPreferences:
        """
        Resolve preferences for a user, creating the default row on first use.

        Raises:
            DatastoreError: The preference row could not be read or created
        """
        cache_key = cls._get_cache_key(user.pk)
        if use_cache:
            cached = cache.get(cache_key)
            if cached is not None:
                return cached

        resolved = ResolvedPreferences.from_model(cls.get_or_create_model(user))

        if use_cache:
            cache.set(
                cache_key,
                resolved,
                timeout=settings.NOTIFICATION_PREFERENCE_CACHE_TTL,
            )
        return resolved

    @classmethod
    def get_or_create_model(cls, user: AbstractBaseUser) -> UserNotificationPreference:
        """
        Fetch the preference row, inserting defaults when missing.

        Two callers racing on first access both attempt the insert; the
        loser's IntegrityError is absorbed and the winner's row re-read.
        """
        from notifications.models import UserNotificationPreference

        try:
            try:
                with transaction.atomic():
                    pref, created = UserNotificationPreference.objects.get_or_create(
                        user=user
                    )
            except IntegrityError:
                pref = UserNotificationPreference.objects.get(user=user)
                created = False
        except DatabaseError as e:
            raise DatastoreError(
                f"Could not load notification preferences for user {user.pk}",
                details={"user_id": str(user.pk), "original_error": str(e)},
            ) from e

        if created:
            logger.info(f"Created default notification preferences for user {user.pk}")
        return pref

    @classmethod
    def invalidate_cache(cls, user_id: UUID | int) -> None:
        cache.delete(cls._get_cache_key(user_id))
