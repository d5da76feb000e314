"""
WSGI config for the recruiting_tracker project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'recruiting_tracker.settings')

application = get_wsgi_application()
