"""
WSGI config for the Condo project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "condo.settings")

application = get_wsgi_application()
