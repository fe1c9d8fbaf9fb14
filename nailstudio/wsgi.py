"""
WSGI config for the nail studio scheduling system.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'nailstudio.settings.production')

application = get_wsgi_application()
