"""
Add Celery Beat schedules for the notification queue.

This migration creates periodic task schedules for:
- Draining due queue records (every minute)
- Releasing records stuck in PROCESSING after a worker crash (every 5 minutes)
- Purging old SENT queue records (daily)
"""

from django.db import migrations

TASK_NAMES = [
    "Notifications: Process Queue",
    "Notifications: Release Stale Claims",
    "Notifications: Purge Sent Records",
]


def create_periodic_tasks(apps, schema_editor):
    """Create periodic tasks for queue processing and maintenance."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule_1min, _ = IntervalSchedule.objects.get_or_create(
        every=1,
        period="minutes",
    )

    schedule_5min, _ = IntervalSchedule.objects.get_or_create(
        every=5,
        period="minutes",
    )

    # Daily at 3 AM UTC
    crontab_daily_3am, _ = CrontabSchedule.objects.get_or_create(
        minute="0",
        hour="3",
        day_of_week="*",
        day_of_month="*",
        month_of_year="*",
    )

    PeriodicTask.objects.get_or_create(
        name="Notifications: Process Queue",
        defaults={
            "task": "notifications.tasks.process_notification_queue",
            "interval": schedule_1min,
            "enabled": True,
            "description": (
                "Dispatches pending notifications whose process_after has passed, "
                "in priority order. Picks up retries and quiet-hour deferrals."
            ),
        },
    )

    PeriodicTask.objects.get_or_create(
        name="Notifications: Release Stale Claims",
        defaults={
            "task": "notifications.tasks.release_stale_notifications",
            "interval": schedule_5min,
            "enabled": True,
            "description": (
                "Returns notifications stuck in PROCESSING (worker crashed "
                "mid-send) to PENDING so the next drain retries them."
            ),
        },
    )

    PeriodicTask.objects.get_or_create(
        name="Notifications: Purge Sent Records",
        defaults={
            "task": "notifications.tasks.purge_sent_notifications",
            "crontab": crontab_daily_3am,
            "enabled": True,
            "description": (
                "Deletes SENT queue records past the retention period. "
                "FAILED records are kept for inspection."
            ),
        },
    )


def remove_periodic_tasks(apps, schema_editor):
    """Remove notification periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")
    PeriodicTask.objects.filter(name__in=TASK_NAMES).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("notifications", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
