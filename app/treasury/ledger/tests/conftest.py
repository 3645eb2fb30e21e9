"""
Pytest fixtures for ledger tests.

This module provides fixtures for testing the ledger system, organized
into logical sections for clarity.

Sections:
    - Cashbox Fixtures: Cashboxes in various states
    - Transaction Fixtures: Histories recorded through LedgerService
    - Test Data Fixtures: UUIDs and actors
"""

import uuid
from decimal import Decimal

import pytest

from treasury.ledger.models import TransactionCategory
from treasury.ledger.services import LedgerService
from treasury.ledger.tests.factories import CashboxFactory


# ==========================================================================
# Cashbox Fixtures
# ==========================================================================


@pytest.fixture
def cashbox(db):
    """Empty cashbox (initial balance 0.00)."""
    return CashboxFactory(name="Front Desk")


@pytest.fixture
def funded_cashbox(db):
    """
    Cashbox opened with a 1000.00 float.

    No transactions yet; current_balance == initial_balance.
    """
    return CashboxFactory(name="Main Register", initial_balance=Decimal("1000.00"))


@pytest.fixture
def inactive_cashbox(db):
    """
    Deactivated cashbox holding 500.00.

    Used for testing that writes on inactive cashboxes are rejected.
    """
    return CashboxFactory(
        name="Closed Branch",
        initial_balance=Decimal("500.00"),
        is_active=False,
    )


# ==========================================================================
# Transaction Fixtures
# ==========================================================================


@pytest.fixture
def income_txn(funded_cashbox, actor):
    """A 500.00 payment income on funded_cashbox (balance becomes 1500.00)."""
    return LedgerService.record_income(
        funded_cashbox,
        Decimal("500.00"),
        TransactionCategory.PAYMENT,
        description="Payment for order #1042",
        actor=actor,
    )


@pytest.fixture
def expense_txn(funded_cashbox, actor):
    """A 200.00 expense on funded_cashbox (balance becomes 800.00)."""
    return LedgerService.record_expense(
        funded_cashbox,
        Decimal("200.00"),
        TransactionCategory.EXPENSE,
        description="Cleaning supplies",
        actor=actor,
    )


# ==========================================================================
# Test Data Fixtures
# ==========================================================================


@pytest.fixture
def actor():
    """Service identifier recorded as created_by."""
    return "cashier-1"


@pytest.fixture
def random_uuid():
    """Generate a random UUID for testing."""
    return uuid.uuid4()
