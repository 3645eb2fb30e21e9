"""
Serializers for treasury API.

This module provides DRF serializers for the cashbox and transaction
endpoints. Balances and transactions are read-only over the API; the
only write serializers are the cashbox PATCH (name, description,
is_active) and the reversal request.

Serializers:
    CashboxSerializer: Cashbox with today's income/expense
    CashboxUpdateSerializer: Editable cashbox fields
    TransactionSerializer: Read-only transaction with is_reversed flag
    ReverseTransactionSerializer: Reversal request body
    DailySummarySerializer: Derived daily figures
    ReconciliationResultSerializer: Outcome of a recalculation
    CategorySerializer: Category value/label pair

Usage:
    from treasury.serializers import TransactionSerializer

    serializer = TransactionSerializer(transactions, many=True)
    data = serializer.data
"""

from __future__ import annotations

from rest_framework import serializers

from treasury.ledger.models import Cashbox, Transaction


class CashboxSerializer(serializers.ModelSerializer):
    """
    Serializer for Cashbox model.

    Read-only; today_income and today_expense are computed per cashbox.
    """

    today_income = serializers.SerializerMethodField()
    today_expense = serializers.SerializerMethodField()

    class Meta:
        model = Cashbox
        fields = [
            "id",
            "branch_id",
            "name",
            "description",
            "initial_balance",
            "current_balance",
            "is_active",
            "today_income",
            "today_expense",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_today_income(self, obj: Cashbox) -> str:
        return str(obj.today_income())

    def get_today_expense(self, obj: Cashbox) -> str:
        return str(obj.today_expense())


class CashboxUpdateSerializer(serializers.ModelSerializer):
    """
    Editable cashbox fields.

    Balances are not accepted here; they only move through the ledger.
    """

    class Meta:
        model = Cashbox
        fields = ["name", "description", "is_active"]
        extra_kwargs = {
            "name": {"required": False},
            "description": {"required": False},
            "is_active": {"required": False},
        }


class TransactionSerializer(serializers.ModelSerializer):
    """
    Read-only serializer for Transaction model.

    is_reversed is annotated by the viewset queryset when available, to
    avoid one query per row.
    """

    cashbox_name = serializers.CharField(source="cashbox.name", read_only=True)
    is_reversed = serializers.SerializerMethodField()
    type_label = serializers.CharField(source="get_type_display", read_only=True)
    category_label = serializers.CharField(source="get_category_display", read_only=True)

    class Meta:
        model = Transaction
        fields = [
            "id",
            "cashbox",
            "cashbox_name",
            "sequence",
            "type",
            "type_label",
            "amount",
            "balance_after",
            "category",
            "category_label",
            "description",
            "reference_kind",
            "reference_id",
            "reversed_transaction",
            "is_reversed",
            "created_by",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields

    def get_is_reversed(self, obj: Transaction) -> bool:
        return obj.is_reversed


class ReverseTransactionSerializer(serializers.Serializer):
    """Request body for reversing a transaction."""

    reason = serializers.CharField(max_length=500, trim_whitespace=True)


class ReversalResponseSerializer(serializers.Serializer):
    """Response for a successful reversal."""

    reversal = TransactionSerializer()
    original = TransactionSerializer()
    new_balance = serializers.DecimalField(max_digits=15, decimal_places=2)


class DailySummarySerializer(serializers.Serializer):
    """Derived daily figures for one cashbox."""

    cashbox_id = serializers.UUIDField()
    date = serializers.DateField()
    opening_balance = serializers.DecimalField(max_digits=15, decimal_places=2)
    total_income = serializers.DecimalField(max_digits=15, decimal_places=2)
    total_expense = serializers.DecimalField(max_digits=15, decimal_places=2)
    net_change = serializers.DecimalField(max_digits=16, decimal_places=2)
    closing_balance = serializers.DecimalField(max_digits=15, decimal_places=2)
    transaction_count = serializers.IntegerField()
    income_count = serializers.IntegerField()
    expense_count = serializers.IntegerField()
    reversal_count = serializers.IntegerField()


class ReconciliationResultSerializer(serializers.Serializer):
    """Outcome of recalculating a cashbox balance."""

    cashbox_id = serializers.UUIDField()
    previous_balance = serializers.DecimalField(max_digits=15, decimal_places=2)
    calculated_balance = serializers.DecimalField(max_digits=15, decimal_places=2)
    difference = serializers.DecimalField(max_digits=16, decimal_places=2)
    corrected = serializers.BooleanField()


class CashboxDetailSerializer(CashboxSerializer):
    """Cashbox with today's summary and its most recent transactions."""

    today_summary = serializers.SerializerMethodField()
    recent_transactions = serializers.SerializerMethodField()

    RECENT_LIMIT = 20

    class Meta(CashboxSerializer.Meta):
        fields = CashboxSerializer.Meta.fields + ["today_summary", "recent_transactions"]
        read_only_fields = fields

    def get_today_summary(self, obj: Cashbox) -> dict:
        from treasury.ledger.services import ledger

        return DailySummarySerializer(ledger.daily_summary(obj)).data

    def get_recent_transactions(self, obj: Cashbox) -> list:
        recent = (
            obj.transactions.select_related("cashbox")
            .with_reversal_flag()
            .order_by("-sequence")[: self.RECENT_LIMIT]
        )
        return TransactionSerializer(recent, many=True).data


class CategorySerializer(serializers.Serializer):
    """A transaction category value and its label."""

    value = serializers.CharField()
    label = serializers.CharField()
