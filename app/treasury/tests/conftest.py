"""
Test configuration and fixtures for treasury tests.

This module provides:
- User and API client fixtures for authenticated requests
- Cashbox fixtures with and without history
- A mocked Redis client for distributed lock tests

Usage:
    def test_example(funded_cashbox, authenticated_client):
        url = reverse("treasury:cashbox-detail", args=[funded_cashbox.id])
        response = authenticated_client.get(url)
        assert response.status_code == 200
"""

from decimal import Decimal

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from treasury.ledger.models import TransactionCategory
from treasury.ledger.services import LedgerService
from treasury.ledger.tests.factories import CashboxFactory
from treasury.tests.factories import UserFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a cashier user."""
    return UserFactory()


@pytest.fixture
def staff_user(db):
    """Create a superuser for admin tests."""
    return UserFactory(is_staff=True, is_superuser=True)


# =============================================================================
# Cashbox Fixtures
# =============================================================================


@pytest.fixture
def cashbox(db):
    """Empty cashbox (initial balance 0.00)."""
    return CashboxFactory(name="Front Desk")


@pytest.fixture
def funded_cashbox(db):
    """Cashbox opened with a 1000.00 float and no transactions."""
    return CashboxFactory(name="Main Register", initial_balance=Decimal("1000.00"))


@pytest.fixture
def inactive_cashbox(db):
    """Deactivated cashbox holding 500.00."""
    return CashboxFactory(
        name="Closed Branch",
        initial_balance=Decimal("500.00"),
        is_active=False,
    )


@pytest.fixture
def income_txn(funded_cashbox):
    """A 500.00 payment on funded_cashbox (balance 1500.00)."""
    return LedgerService.record_income(
        funded_cashbox,
        Decimal("500.00"),
        TransactionCategory.PAYMENT,
        description="Payment for order #1042",
        actor="cashier-1",
    )


@pytest.fixture
def expense_txn(funded_cashbox):
    """A 200.00 expense on funded_cashbox."""
    return LedgerService.record_expense(
        funded_cashbox,
        Decimal("200.00"),
        TransactionCategory.EXPENSE,
        description="Cleaning supplies",
        actor="cashier-1",
    )


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """API client authenticated with JWT token for the default user fixture."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


# =============================================================================
# Infrastructure Fixtures
# =============================================================================


@pytest.fixture
def mock_redis(mocker):
    """
    Mock Redis client for distributed lock tests.

    Returns a MagicMock configured so that every lock is free: SET NX
    succeeds and the release/extend scripts report ownership.
    """
    mock_client = mocker.MagicMock()
    mock_client.set.return_value = True
    mock_client.get.return_value = None
    mock_client.eval.return_value = 1

    mocker.patch(
        "treasury.locks.get_redis_connection",
        return_value=mock_client,
    )

    return mock_client
