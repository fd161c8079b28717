"""
WSGI config for the livestock backend.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'livestock_backend.settings')

application = get_wsgi_application()
