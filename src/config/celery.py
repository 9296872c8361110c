"""Celery application for the courier back office.

``DJANGO_SETTINGS_MODULE`` is set before the app is created so Celery reads
its configuration from the Django settings (``CELERY_`` namespace).
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("courier")

app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up tasks.py in every installed app (e.g. shipments.auto_batch_orders)
app.autodiscover_tasks()
