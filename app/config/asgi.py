"""
ASGI config for the treasury backend.

This file exposes the ASGI callable as a module-level variable named
`application`. Uvicorn uses this entry point to serve the Django
application; the treasury API is plain HTTP, so no protocol router is
needed.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
