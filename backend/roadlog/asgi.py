"""ASGI entrypoint for the roadlog client service."""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'roadlog.settings')

application = get_asgi_application()
