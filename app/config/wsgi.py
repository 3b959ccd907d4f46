"""
WSGI config for the chat backend.

Serves the REST API only. WebSocket chat sessions need the ASGI entry
point in config/asgi.py.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
