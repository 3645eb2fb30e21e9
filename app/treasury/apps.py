"""
Treasury app configuration.

This app provides cash register accounting including:
- Cashbox balance store
- Immutable transaction ledger
- Scheduled reconciliation (Celery)
"""

from django.apps import AppConfig


class TreasuryConfig(AppConfig):
    """Configuration for the treasury application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "treasury"
    verbose_name = "Treasury"
