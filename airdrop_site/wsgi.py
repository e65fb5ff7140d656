"""
WSGI config for the AirDrop Web project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'airdrop_site.settings')

application = get_wsgi_application()
