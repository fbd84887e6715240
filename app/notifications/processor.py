"""
Queue processing: draining due notifications and dispatching them.

QueueProcessor owns every status transition of a QueuedNotification:

    PENDING --claim--> PROCESSING --success--> SENT
                                  --failure--> PENDING (process_after = now + backoff)
                                  --failure, attempts exhausted--> FAILED

Design:
    - The claim is a conditional UPDATE (status=pending -> processing); a
      zero-row update means another worker owns the record and it is skipped.
      This is the only protection against double sends, so drains may run
      concurrently with each other and with immediate dispatch tasks.
    - Any exception raised while delivering (missing address, transport
      error, rendering bug) becomes a failed attempt. Nothing raised by a
      sender escapes dispatch() or drain().
    - Backoff follows NOTIFICATION_RETRY_DELAYS_MINUTES (1, 5, 15, 30), reusing
      the last delay once the schedule is exhausted.
    - Senders are injected; tests pass fakes, production uses
      notifications.channels.get_senders().

Usage:
    from notifications.processor import QueueProcessor

    QueueProcessor().drain(batch_size=50)
    QueueProcessor().dispatch(notification_id)
"""

from __future__ import annotations

import datetime
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import connections
from django.db.models import F
from django.utils import timezone

from notifications.channels import get_senders
from notifications.channels.base import MessageContent, SendResult
from notifications.exceptions import datastore_errors
from notifications.models import Channel, DeviceToken, QueuedNotification, QueueStatus

if TYPE_CHECKING:
    from uuid import UUID

    from notifications.channels.base import ChannelSender

logger = logging.getLogger(__name__)


def backoff_delay(attempts: int) -> datetime.timedelta:
    """
    Delay before the next attempt after `attempts` failures.

    attempts=1 -> 1 min, 2 -> 5, 3 -> 15, 4 and later -> 30.
    """
    delays = settings.NOTIFICATION_RETRY_DELAYS_MINUTES
    index = min(max(attempts, 1) - 1, len(delays) - 1)
    return datetime.timedelta(minutes=delays[index])


class QueueProcessor:
    """
    Dispatches queued notifications to channel senders or the in-app store.

    Args:
        senders: Mapping of channel name to sender (default: from settings)
        concurrency: Dispatches run in parallel within one drain
            (default: NOTIFICATION_DISPATCH_CONCURRENCY; 1 runs inline)
    """

    def __init__(
        self,
        senders: dict[str, ChannelSender] | None = None,
        concurrency: int | None = None,
    ) -> None:
        self._senders = senders
        self.concurrency = (
            concurrency
            if concurrency is not None
            else settings.NOTIFICATION_DISPATCH_CONCURRENCY
        )

    @property
    def senders(self) -> dict[str, ChannelSender]:
        if self._senders is None:
            self._senders = get_senders()
        return self._senders

    # =========================================================================
    # Drain
    # =========================================================================

    def drain(self, batch_size: int | None = None) -> int:
        """
        Dispatch up to `batch_size` due pending records.

        Records are selected in (priority, created_at) order. Returns the
        number of records examined, including ones another worker claimed
        first.

        Raises:
            DatastoreError: The due records could not be selected
        """
        if batch_size is None:
            batch_size = settings.NOTIFICATION_DRAIN_BATCH_SIZE
        with datastore_errors("select due notifications"):
            notification_ids = list(
                QueuedNotification.objects.due()
                .order_by("priority", "created_at")
                .values_list("id", flat=True)[:batch_size]
            )

        if not notification_ids:
            return 0

        logger.info(
            f"Draining {len(notification_ids)} queued notifications",
            extra={"batch_size": batch_size, "concurrency": self.concurrency},
        )

        if self.concurrency <= 1:
            for notification_id in notification_ids:
                self._dispatch_safely(notification_id)
        else:
            with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
                futures = [
                    executor.submit(self._dispatch_in_thread, notification_id)
                    for notification_id in notification_ids
                ]
                for future in as_completed(futures):
                    future.result()

        return len(notification_ids)

    def _dispatch_safely(self, notification_id: UUID | str) -> None:
        """dispatch() for drains: a datastore fault on one record is logged and skipped."""
        try:
            self.dispatch(notification_id)
        except Exception:
            logger.exception(f"Failed to process queued notification {notification_id}")

    def _dispatch_in_thread(self, notification_id: UUID | str) -> None:
        try:
            self._dispatch_safely(notification_id)
        finally:
            # Worker threads own their connections
            connections.close_all()

    # =========================================================================
    # Dispatch
    # =========================================================================

    def dispatch(self, notification_id: UUID | str) -> str | None:
        """
        Deliver one queued notification.

        Returns:
            The resulting status, or None when the record is missing, not
            pending, or was claimed by another worker.
        """
        record = self._get_pending(notification_id)
        if record is None:
            return None

        if not self.claim(record):
            logger.info(f"Queued notification {notification_id} already claimed, skipping")
            return None

        try:
            result = self.deliver(record)
        except Exception as e:
            return self._record_failure(record, e)

        return self._record_success(record, result)

    def _get_pending(self, notification_id: UUID | str) -> QueuedNotification | None:
        try:
            record = QueuedNotification.objects.select_related("recipient").get(
                id=notification_id
            )
        except QueuedNotification.DoesNotExist:
            logger.warning(f"Queued notification {notification_id} not found")
            return None

        if record.status != QueueStatus.PENDING:
            logger.info(
                f"Queued notification {notification_id} status is {record.status}, skipping"
            )
            return None
        return record

    def claim(self, record: QueuedNotification) -> bool:
        """Atomically move `record` from PENDING to PROCESSING."""
        now = timezone.now()
        claimed = QueuedNotification.objects.filter(
            id=record.id,
            status=QueueStatus.PENDING,
        ).update(status=QueueStatus.PROCESSING, updated_at=now)

        if claimed:
            record.status = QueueStatus.PROCESSING
            record.updated_at = now
        return bool(claimed)

    def deliver(self, record: QueuedNotification) -> SendResult:
        """Route `record` to its channel. Raises on any delivery failure."""
        if record.channel == Channel.IN_APP:
            from notifications.services import InAppNotificationService

            notification = InAppNotificationService.create_from_queue(record)
            return SendResult(provider="in_app", message_id=str(notification.id))

        sender = self.senders.get(record.channel)
        if sender is None:
            raise ValueError(f"No sender for channel {record.channel!r}")

        content = MessageContent(
            title=record.title,
            body=record.message,
            data=record.payload or {},
        )
        return sender.send(self.resolve_address(record), content)

    def resolve_address(self, record: QueuedNotification) -> str:
        """
        Address for external channels.

        An explicit address on the record wins; otherwise push uses the
        recipient's newest active device token, email the account email and
        SMS the phone number from preferences. May return "" (the sender
        then raises MissingAddressError).
        """
        if record.address:
            return record.address

        if record.channel == Channel.PUSH:
            token = (
                DeviceToken.objects.filter(user_id=record.recipient_id, is_active=True)
                .order_by("-updated_at")
                .values_list("token", flat=True)
                .first()
            )
            return token or ""

        if record.channel == Channel.EMAIL:
            return record.recipient.email or ""

        if record.channel == Channel.SMS:
            from notifications.preferences import PreferenceResolver

            return PreferenceResolver.resolve(record.recipient).phone_number

        return ""

    def _record_success(self, record: QueuedNotification, result: SendResult) -> str:
        now = timezone.now()
        QueuedNotification.objects.filter(
            id=record.id,
            status=QueueStatus.PROCESSING,
        ).update(
            status=QueueStatus.SENT,
            sent_at=now,
            provider_response=result.to_dict(),
            updated_at=now,
        )

        logger.info(
            f"Queued notification {record.id} sent via {record.channel}, "
            f"provider={result.provider} message_id={result.message_id}",
            extra={"notification_id": str(record.id), "channel": record.channel},
        )
        return QueueStatus.SENT

    def _record_failure(self, record: QueuedNotification, error: Exception) -> str:
        now = timezone.now()
        attempts = record.attempts + 1
        error_text = str(error)

        if attempts < record.max_attempts:
            status = QueueStatus.PENDING
            changes = {
                "status": status,
                "attempts": attempts,
                "last_error": error_text,
                "process_after": now + backoff_delay(attempts),
                "updated_at": now,
            }
        else:
            status = QueueStatus.FAILED
            changes = {
                "status": status,
                "attempts": attempts,
                "last_error": error_text,
                "failed_at": now,
                "updated_at": now,
            }

        QueuedNotification.objects.filter(
            id=record.id,
            status=QueueStatus.PROCESSING,
        ).update(**changes)

        if getattr(error, "error_code", None) == "TOKEN_UNREGISTERED":
            self._deactivate_token(record)

        log = logger.warning if status == QueueStatus.PENDING else logger.error
        log(
            f"Queued notification {record.id} failed attempt "
            f"{attempts}/{record.max_attempts} via {record.channel}: {error_text}",
            extra={
                "notification_id": str(record.id),
                "channel": record.channel,
                "status": status,
            },
        )
        return status

    def _deactivate_token(self, record: QueuedNotification) -> None:
        token = self.resolve_address(record)
        if token:
            DeviceToken.objects.filter(token=token).update(
                is_active=False, updated_at=timezone.now()
            )
            logger.info(f"Deactivated unregistered device token for user {record.recipient_id}")

    # =========================================================================
    # Maintenance
    # =========================================================================

    def release_stale_claims(self, timeout_minutes: int | None = None) -> int:
        """
        Recover records left in PROCESSING by a crashed worker.

        The interrupted attempt counts toward the retry budget: records with
        attempts left return to PENDING (due immediately), the rest are
        marked FAILED. Returns the number of records recovered.
        """
        timeout_minutes = (
            timeout_minutes or settings.NOTIFICATION_PROCESSING_TIMEOUT_MINUTES
        )
        now = timezone.now()
        stale = QueuedNotification.objects.filter(
            status=QueueStatus.PROCESSING,
            updated_at__lt=now - datetime.timedelta(minutes=timeout_minutes),
        )
        error_text = f"Processing timed out after {timeout_minutes} minutes"

        failed = stale.filter(attempts__gte=F("max_attempts") - 1).update(
            status=QueueStatus.FAILED,
            attempts=F("attempts") + 1,
            last_error=error_text,
            failed_at=now,
            updated_at=now,
        )
        released = stale.update(
            status=QueueStatus.PENDING,
            attempts=F("attempts") + 1,
            last_error=error_text,
            process_after=now,
            updated_at=now,
        )

        if failed or released:
            logger.warning(
                f"Recovered stale notifications: {released} released, {failed} failed"
            )
        return released + failed

    def purge_sent(self, retention_days: int | None = None) -> int:
        """Delete SENT records older than the retention period."""
        retention_days = retention_days or settings.NOTIFICATION_QUEUE_RETENTION_DAYS
        cutoff = timezone.now() - datetime.timedelta(days=retention_days)
        deleted, _ = QueuedNotification.objects.filter(
            status=QueueStatus.SENT,
            sent_at__lt=cutoff,
        ).delete()

        if deleted:
            logger.info(f"Purged {deleted} sent queue records older than {retention_days} days")
        return deleted
