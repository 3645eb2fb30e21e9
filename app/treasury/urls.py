"""
URL configuration for treasury API.

Routes:
    Cashboxes:
        /cashboxes/                         - List cashboxes (GET)
        /cashboxes/{id}/                    - Cashbox detail (GET, PATCH)
        /cashboxes/{id}/daily-summary/      - Daily summary (GET)
        /cashboxes/{id}/recalculate/        - Reconcile balance (POST)
        /cashboxes/branch/{branch_id}/      - Branch's cashbox (GET)

    Transactions:
        /transactions/                      - List transactions (GET)
        /transactions/{id}/                 - Transaction detail (GET)
        /transactions/{id}/reverse/         - Reverse transaction (POST)
        /transactions/categories/           - List categories (GET)
"""

from rest_framework.routers import DefaultRouter

from treasury.views import CashboxViewSet, TransactionViewSet

router = DefaultRouter()
router.register(r"cashboxes", CashboxViewSet, basename="cashbox")
router.register(r"transactions", TransactionViewSet, basename="transaction")

app_name = "treasury"
urlpatterns = router.urls
