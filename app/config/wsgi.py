"""
WSGI config for the notification service.

Exposes the WSGI callable as a module-level variable named `application`
for gunicorn/uwsgi. The in-app API is plain request/response, so no ASGI
entry point is provided.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
