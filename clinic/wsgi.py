"""
WSGI entrypoint for HTTP-only deployments (gunicorn).

The WebSocket feed needs the ASGI application in ``clinic.asgi``.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'clinic.settings')

application = get_wsgi_application()
