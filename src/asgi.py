"""
ASGI entry point. The console is served over WSGI in production;
this exists for local runs under an ASGI server.
"""
import os

from src.config.env import env

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", env.settings_module)

application = get_asgi_application()
