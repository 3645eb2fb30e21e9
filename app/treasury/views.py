"""
Views for treasury API.

This module provides the ViewSets for cashbox and transaction endpoints.
Nothing here writes a balance or a transaction directly: every money
movement goes through LedgerService.

ViewSets:
    CashboxViewSet: List/retrieve/patch cashboxes plus summary and recalculation
    TransactionViewSet: ReadOnlyModelViewSet with a reverse action

Endpoints:
    Cashboxes:
        GET /api/v1/treasury/cashboxes/ - List cashboxes (paginated, filtered)
        GET /api/v1/treasury/cashboxes/{id}/ - Cashbox detail with today's summary
        PATCH /api/v1/treasury/cashboxes/{id}/ - Update name/description/is_active
        GET /api/v1/treasury/cashboxes/{id}/daily-summary/ - Daily figures
        POST /api/v1/treasury/cashboxes/{id}/recalculate/ - Reconcile balance
        GET /api/v1/treasury/cashboxes/branch/{branch_id}/ - Branch's cashbox

    Transactions:
        GET /api/v1/treasury/transactions/ - List transactions (paginated, filtered)
        GET /api/v1/treasury/transactions/{id}/ - Transaction detail
        POST /api/v1/treasury/transactions/{id}/reverse/ - Reverse a transaction
        GET /api/v1/treasury/transactions/categories/ - List categories

Usage:
    # In urls.py
    from rest_framework.routers import DefaultRouter
    from treasury.views import CashboxViewSet, TransactionViewSet

    router = DefaultRouter()
    router.register(r"cashboxes", CashboxViewSet, basename="cashbox")
    router.register(r"transactions", TransactionViewSet, basename="transaction")
"""

from __future__ import annotations

import uuid

from django.utils import timezone
from django.utils.dateparse import parse_date

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from django_filters.rest_framework import DjangoFilterBackend

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiParameter,
    OpenApiResponse,
)

from treasury.filters import CashboxFilter, TransactionFilter
from treasury.ledger.exceptions import (
    AlreadyReversed,
    CannotReverseReversal,
    CashboxNotFound,
    LedgerError,
    LockTimeout,
    TransactionNotFound,
)
from treasury.ledger.models import (
    Cashbox,
    Transaction,
    TransactionCategory,
)
from treasury.ledger.services import ledger
from treasury.serializers import (
    CashboxDetailSerializer,
    CashboxSerializer,
    CashboxUpdateSerializer,
    CategorySerializer,
    DailySummarySerializer,
    ReconciliationResultSerializer,
    ReversalResponseSerializer,
    ReverseTransactionSerializer,
    TransactionSerializer,
)

ERROR_STATUS = (
    ((CashboxNotFound, TransactionNotFound), status.HTTP_404_NOT_FOUND),
    ((AlreadyReversed, CannotReverseReversal, LockTimeout), status.HTTP_409_CONFLICT),
)


def ledger_error_response(exc: LedgerError) -> Response:
    """Map a ledger exception to its HTTP response (400 unless listed above)."""
    for classes, code in ERROR_STATUS:
        if isinstance(exc, classes):
            return Response(exc.to_dict(), status=code)
    return Response(exc.to_dict(), status=status.HTTP_400_BAD_REQUEST)


def _query_date(request, name: str):
    value = request.query_params.get(name)
    if not value:
        return None
    try:
        parsed = parse_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError({name: "Expected a date in YYYY-MM-DD format."})
    return parsed


@extend_schema_view(
    list=extend_schema(
        operation_id="list_cashboxes",
        summary="List cashboxes",
        description=(
            "Get paginated list of cashboxes with today's income and expense. "
            "Supports filtering by branch and active status."
        ),
        tags=["Treasury - Cashboxes"],
    ),
    retrieve=extend_schema(
        operation_id="get_cashbox",
        summary="Get cashbox",
        description="Get a cashbox with today's summary and its 20 most recent transactions.",
        responses={200: CashboxDetailSerializer},
        tags=["Treasury - Cashboxes"],
    ),
    partial_update=extend_schema(
        operation_id="update_cashbox",
        summary="Update cashbox",
        description=(
            "Update a cashbox's name, description or active status. "
            "Balances are read-only and change only through the ledger."
        ),
        request=CashboxUpdateSerializer,
        responses={200: CashboxSerializer},
        tags=["Treasury - Cashboxes"],
    ),
)
class CashboxViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for cashbox operations.

    Provides:
    - list: GET / - List cashboxes with filtering
    - retrieve: GET /{id}/ - Cashbox detail
    - partial_update: PATCH /{id}/ - Update editable fields
    - daily_summary: GET /{id}/daily-summary/ - Daily figures
    - recalculate: POST /{id}/recalculate/ - Reconcile stored balance
    - by_branch: GET /branch/{branch_id}/ - Branch's cashbox

    Filtering:
    - ?branch_id=uuid - Filter by branch
    - ?is_active=true/false - Filter by active status

    Permissions:
    - All endpoints require authentication
    """

    permission_classes = [IsAuthenticated]
    serializer_class = CashboxSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = CashboxFilter
    http_method_names = ["get", "post", "patch", "head", "options"]

    def get_queryset(self):
        return Cashbox.objects.all()

    def get_serializer_class(self):
        if self.action == "retrieve":
            return CashboxDetailSerializer
        if self.action == "partial_update":
            return CashboxUpdateSerializer
        return CashboxSerializer

    def partial_update(self, request, *args, **kwargs):
        """
        Update editable cashbox fields.

        Balance fields in the body are ignored.

        Returns:
            Serialized cashbox data
        """
        cashbox = self.get_object()
        serializer = CashboxUpdateSerializer(cashbox, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(CashboxSerializer(cashbox).data)

    @extend_schema(
        operation_id="get_cashbox_daily_summary",
        summary="Get cashbox daily summary",
        description=(
            "Opening and closing balance, totals and counts for one day, "
            "derived from the transaction log. Defaults to today."
        ),
        parameters=[
            OpenApiParameter(
                name="date",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Day to summarise (YYYY-MM-DD)",
                required=False,
            ),
        ],
        responses={
            200: DailySummarySerializer,
            400: OpenApiResponse(description="Invalid date"),
            404: OpenApiResponse(description="Cashbox not found"),
        },
        tags=["Treasury - Cashboxes"],
    )
    @action(detail=True, methods=["get"], url_path="daily-summary")
    def daily_summary(self, request, pk=None):
        """
        Get the daily summary for a cashbox.

        Returns:
            Serialized DailySummary
        """
        cashbox = self.get_object()
        day = _query_date(request, "date") or timezone.localdate()
        summary = ledger.daily_summary(cashbox, day)
        return Response(DailySummarySerializer(summary).data)

    @extend_schema(
        operation_id="recalculate_cashbox_balance",
        summary="Recalculate cashbox balance",
        description=(
            "Replay the cashbox's transaction log and correct the stored "
            "balance if it has drifted."
        ),
        request=None,
        responses={
            200: ReconciliationResultSerializer,
            404: OpenApiResponse(description="Cashbox not found"),
            409: OpenApiResponse(description="Cashbox is busy, retry"),
        },
        tags=["Treasury - Cashboxes"],
    )
    @action(detail=True, methods=["post"])
    def recalculate(self, request, pk=None):
        """
        Reconcile a cashbox's stored balance with its history.

        Returns:
            Serialized ReconciliationResult
        """
        cashbox = self.get_object()
        try:
            result = ledger.reconcile(cashbox)
        except LedgerError as e:
            return ledger_error_response(e)
        return Response(ReconciliationResultSerializer(result).data)

    @extend_schema(
        operation_id="get_branch_cashbox",
        summary="Get branch cashbox",
        description="Get the cashbox owned by a branch.",
        responses={
            200: CashboxSerializer,
            404: OpenApiResponse(description="Branch has no cashbox"),
        },
        tags=["Treasury - Cashboxes"],
    )
    @action(detail=False, methods=["get"], url_path=r"branch/(?P<branch_id>[^/.]+)")
    def by_branch(self, request, branch_id=None):
        """
        Get a branch's cashbox.

        Returns 404 if the branch has no cashbox or the id is not a UUID.
        """
        try:
            cashbox = Cashbox.objects.for_branch(uuid.UUID(str(branch_id))).get()
        except (ValueError, Cashbox.DoesNotExist):
            return Response(
                {"detail": "No cashbox found for this branch."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(CashboxSerializer(cashbox).data)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_transactions",
        summary="List transactions",
        description=(
            "Get paginated list of ledger transactions, newest first. "
            "Each row reports whether it has been reversed."
        ),
        tags=["Treasury - Transactions"],
    ),
    retrieve=extend_schema(
        operation_id="get_transaction",
        summary="Get transaction",
        description="Get details of a single ledger transaction.",
        tags=["Treasury - Transactions"],
    ),
)
class TransactionViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for transaction operations.

    Transactions are immutable: there is no create, update or delete
    endpoint. The only write is the reverse action, which records a new
    counter-entry.

    Provides:
    - list: GET / - List transactions with filtering
    - retrieve: GET /{id}/ - Transaction detail
    - reverse: POST /{id}/reverse/ - Reverse a transaction
    - categories: GET /categories/ - List categories

    Permissions:
    - All endpoints require authentication
    """

    permission_classes = [IsAuthenticated]
    serializer_class = TransactionSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = TransactionFilter

    def get_queryset(self):
        """Get transaction queryset with the is_reversed flag annotated."""
        return Transaction.objects.select_related("cashbox").with_reversal_flag()

    @extend_schema(
        operation_id="reverse_transaction",
        summary="Reverse transaction",
        description=(
            "Cancel a transaction by recording a linked reversal entry. "
            "The original transaction is left untouched."
        ),
        request=ReverseTransactionSerializer,
        responses={
            201: ReversalResponseSerializer,
            400: OpenApiResponse(description="Inactive cashbox or insufficient balance"),
            404: OpenApiResponse(description="Transaction not found"),
            409: OpenApiResponse(description="Already reversed, or is a reversal"),
        },
        tags=["Treasury - Transactions"],
    )
    @action(detail=True, methods=["post"])
    def reverse(self, request, pk=None):
        """
        Reverse a transaction.

        Returns:
            {"reversal": {...}, "original": {...}, "new_balance": "..."}
        """
        serializer = ReverseTransactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            original = ledger.get_transaction(pk)
            reversal = ledger.reverse_transaction(
                original,
                reason=serializer.validated_data["reason"],
                actor=request.user,
            )
        except LedgerError as e:
            return ledger_error_response(e)

        response = ReversalResponseSerializer(
            {
                "reversal": reversal,
                "original": original,
                "new_balance": reversal.balance_after,
            }
        )
        return Response(response.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="list_transaction_categories",
        summary="List transaction categories",
        description="Get every transaction category with its display label.",
        responses={200: CategorySerializer(many=True)},
        tags=["Treasury - Transactions"],
    )
    @action(detail=False, methods=["get"])
    def categories(self, request):
        """
        List transaction categories.

        Returns:
            [{"value": "payment", "label": "Payment"}, ...]
        """
        data = [
            {"value": value, "label": label}
            for value, label in TransactionCategory.choices
        ]
        return Response(CategorySerializer(data, many=True).data)
