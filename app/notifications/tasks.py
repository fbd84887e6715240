"""
Celery tasks for notification delivery.

Tasks:
    dispatch_notification: Deliver one queued notification immediately
    process_notification_queue: Drain due pending notifications (every minute)
    release_stale_notifications: Recover records stuck in processing
    purge_sent_notifications: Delete old sent queue records (daily)

Design:
    - Delivery retries are owned by the queue (attempts, backoff,
      process_after), not by Celery. A failed send is recorded on the queue
      record and picked up by a later drain.
    - Celery only retries datastore faults that prevented the record from
      being read or updated at all
    - Tasks are idempotent: dispatching a non-pending record is a no-op

Usage:
    from notifications.tasks import dispatch_notification

    # Called automatically by NotificationService.enqueue() after commit
    dispatch_notification.delay(notification_id="uuid-string")
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.db import DatabaseError

from notifications.processor import QueueProcessor

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def dispatch_notification(self, notification_id: str) -> str | None:
    """
    Deliver one queued notification.

    Args:
        notification_id: UUID string of the QueuedNotification

    Returns:
        The resulting queue status, or None when the record was missing,
        not pending, or claimed by another worker
    """
    logger.info(f"Dispatching queued notification {notification_id}")
    return QueueProcessor().dispatch(notification_id)


@shared_task
def process_notification_queue(batch_size: int | None = None) -> int:
    """
    Dispatch due pending notifications.

    Scheduled every minute by Celery Beat.

    Returns:
        Number of records examined
    """
    processed = QueueProcessor().drain(batch_size=batch_size)
    if processed:
        logger.info(f"Processed {processed} queued notifications")
    return processed


@shared_task
def release_stale_notifications(timeout_minutes: int | None = None) -> int:
    """Return records abandoned in processing to the queue."""
    return QueueProcessor().release_stale_claims(timeout_minutes=timeout_minutes)


@shared_task
def purge_sent_notifications(retention_days: int | None = None) -> int:
    """Delete sent queue records past the retention period."""
    return QueueProcessor().purge_sent(retention_days=retention_days)
