"""
Celery application for the order management project.

DJANGO_SETTINGS_MODULE is set before the app is created so Celery reads
the Django settings (``CELERY_`` prefix).  Workers run the cache
invalidation tasks queued after order mutations commit.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("orders")

app.config_from_object("django.conf:settings", namespace="CELERY")

# Finds tasks.py in every installed app
app.autodiscover_tasks()
