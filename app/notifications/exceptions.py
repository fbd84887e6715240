"""
Notification-specific exceptions.

Exception Hierarchy:
    NotificationError (base for the notification domain)
    ├── DeliveryError - Channel/transport failure (retried with backoff)
    │   └── MissingAddressError - No email / phone / token to deliver to
    │       └── MissingTokenError - Push delivery without a device token
    └── DatastoreError - Persistence fault (always surfaced to the caller)

Expected outcomes are NOT exceptions: a channel blocked by preferences, a
quiet-hours deferral and a missing or disabled template are reported
through ServiceResult (see notifications.services).

Usage:
    from notifications.exceptions import DeliveryError, MissingTokenError

    if not token:
        raise MissingTokenError("No device token for push notification")

    try:
        transport.send(...)
    except ClientError as e:
        raise DeliveryError(str(e), details={"provider": "ses"}) from e
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.db import DatabaseError

from core.exceptions import BaseApplicationError, ExternalServiceError

if TYPE_CHECKING:
    from collections.abc import Generator


class NotificationError(BaseApplicationError):
    """Base exception for the notification domain."""

    default_error_code: str = "NOTIFICATION_ERROR"


class DeliveryError(NotificationError, ExternalServiceError):
    """
    A channel could not deliver a notification.

    Raised by channel senders and converted by the queue processor into a
    retry or a permanent failure; never propagated out of a drain.
    """

    default_error_code: str = "DELIVERY_FAILED"


class MissingAddressError(DeliveryError):
    """The recipient has no address for the channel (email, phone, token)."""

    default_error_code: str = "MISSING_ADDRESS"


class MissingTokenError(MissingAddressError):
    """Push delivery requested without a device token."""

    default_error_code: str = "MISSING_TOKEN"


class DatastoreError(NotificationError):
    """
    The notification store could not be read or written.

    Wraps django.db.DatabaseError on enqueue and in-app operations so callers
    in other subsystems can handle persistence faults without importing
    Django's exception types.
    """

    default_error_code: str = "DATASTORE_ERROR"


@contextmanager
def datastore_errors(action: str) -> Generator[None, None, None]:
    """Re-raise Django DatabaseError as DatastoreError."""
    try:
        yield
    except DatabaseError as e:
        raise DatastoreError(
            f"Could not {action}",
            details={"original_error": str(e)},
        ) from e
