"""
Celery configuration for the treasury backend.

Celery runs the treasury maintenance tasks:
- Nightly reconciliation of every cashbox (scheduled by celery-beat)
- On-demand reconciliation of a single cashbox

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps; the periodic
schedule is stored in the database by django-celery-beat.

Usage:
    from treasury.tasks import reconcile_single_cashbox

    reconcile_single_cashbox.delay(str(cashbox.id))

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Looks for a tasks.py module in each installed app
app.autodiscover_tasks()
