# backend/wsgi.py
"""
WSGI config for backend project.
Defaults to dev settings unless DJANGO_SETTINGS_MODULE is set externally.

In production set DJANGO_SETTINGS_MODULE=backend.settings.prod. Each
gunicorn worker that loads this module starts its own cleanup scheduler
when ORDERS_CLEANUP_ENABLED is on; the sweep is safe to run concurrently.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

application = get_wsgi_application()
