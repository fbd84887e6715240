# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, URLs, the WSGI application and the Celery app.
#
# Importing the Celery app here makes shared_task bind to it when Django
# starts, so NotificationService can submit dispatch tasks from web requests.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
