"""
Notifications app for multi-channel notification delivery.

This app provides:
- QueuedNotification: the durable delivery queue (push, email, SMS, in-app)
- NotificationTemplate: per-channel content with {{placeholder}} variables
- UserNotificationPreference: channel/category opt-in and quiet hours
- Notification: the user's in-app feed
- NotificationService for enqueueing and template sends
- QueueProcessor and Celery tasks for dispatch, retries and maintenance
- REST API for the in-app feed, preferences and push devices

Usage:
    from notifications.services import NotificationService

    result = NotificationService.enqueue(
        recipient=user,
        channel="email",
        title="Your invoice",
        message="<p>Invoice attached</p>",
    )

    if result.success:
        queued = result.data
"""
