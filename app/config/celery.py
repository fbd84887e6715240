"""
Celery configuration for the notification service.

Celery runs the delivery side of the system:
- dispatch_notification: immediate delivery of a freshly queued notification
- process_notification_queue: periodic drain of due queue records (beat)
- release_stale_notifications / purge_sent_notifications: queue maintenance

Redis is both the message broker and result backend. Periodic schedules live
in the database (django-celery-beat) and are seeded by data migrations.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
