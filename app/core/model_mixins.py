"""
Model mixins providing reusable functionality for Django models.

This module contains abstract mixin classes that can be combined with
BaseModel. They are generic infrastructure classes with no domain logic.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Cashbox(UUIDPrimaryKeyMixin, BaseModel):
        name = models.CharField(max_length=255)

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Fields:
        id: UUIDField as primary key (auto-generated)

    Usage:
        class Transaction(UUIDPrimaryKeyMixin, models.Model):
            amount = models.DecimalField(max_digits=15, decimal_places=2)

        # ID is generated before the row is inserted
        txn = Transaction(amount=Decimal("10.00"))
        print(txn.id)  # UUID like: 550e8400-e29b-41d4-a716-446655440000

    Note:
        Because the default is applied on instantiation, use
        ``instance._state.adding`` (not ``instance.pk is None``) to tell
        a new instance from a persisted one.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
