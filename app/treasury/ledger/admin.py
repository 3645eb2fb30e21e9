"""
Django admin configuration for ledger models.

This module configures the admin interface for Cashbox and Transaction,
enforcing immutability for transactions while providing visibility into
balances and history.

Key features:
- Transaction is immutable (no add/edit/delete permissions)
- Cashbox balances are read-only; only name, description and status are editable
- Reconcile action runs LedgerService.reconcile() on selected cashboxes
"""

from django.contrib import admin, messages

from .models import Cashbox, Transaction
from .services import ledger


@admin.register(Cashbox)
class CashboxAdmin(admin.ModelAdmin):
    """
    Admin configuration for Cashbox.

    Balances are never edited here; Cashbox.save() would ignore them anyway.
    """

    list_display = [
        "name",
        "branch_id",
        "current_balance",
        "initial_balance",
        "is_active",
        "created_at",
    ]
    list_filter = ["is_active"]
    search_fields = ["id", "name", "branch_id"]
    readonly_fields = [
        "id",
        "initial_balance",
        "current_balance",
        "created_at",
        "updated_at",
    ]
    ordering = ["name"]
    actions = ["reconcile_selected"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "name", "branch_id", "description", "is_active"),
            },
        ),
        (
            "Balance",
            {
                "fields": ("initial_balance", "current_balance"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    def get_readonly_fields(self, request, obj=None):
        # initial_balance is only settable when the cashbox is created
        if obj is None:
            return [f for f in self.readonly_fields if f != "initial_balance"]
        return self.readonly_fields

    def save_model(self, request, obj, form, change):
        if not change:
            obj.current_balance = obj.initial_balance
        super().save_model(request, obj, form, change)

    def has_delete_permission(self, request, obj=None) -> bool:
        """Cashboxes are deactivated, never deleted."""
        return False

    @admin.action(description="Reconcile selected cashboxes")
    def reconcile_selected(self, request, queryset):
        corrected = 0
        for cashbox in queryset:
            if ledger.reconcile(cashbox).corrected:
                corrected += 1
        self.message_user(
            request,
            f"Reconciled {queryset.count()} cashbox(es), corrected {corrected}.",
            messages.WARNING if corrected else messages.SUCCESS,
        )


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """
    Admin configuration for Transaction.

    Transactions are immutable - they cannot be added, edited or deleted
    through the admin interface. Corrections are made with reversals.
    """

    list_display = [
        "created_at",
        "cashbox",
        "sequence",
        "type",
        "category",
        "amount",
        "balance_after",
        "reference_kind",
        "reference_id",
        "created_by",
    ]
    list_filter = ["type", "category", "reference_kind", "created_at"]
    list_select_related = ["cashbox"]
    search_fields = [
        "id",
        "reference_id",
        "description",
        "created_by",
    ]
    readonly_fields = [
        "id",
        "cashbox",
        "sequence",
        "type",
        "amount",
        "balance_after",
        "category",
        "description",
        "reference_kind",
        "reference_id",
        "reversed_transaction",
        "created_by",
        "metadata",
        "created_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            "Entry Details",
            {
                "fields": (
                    "id",
                    "cashbox",
                    "sequence",
                    "type",
                    "category",
                    "amount",
                    "balance_after",
                    "created_at",
                ),
            },
        ),
        (
            "Reference",
            {
                "fields": ("reference_kind", "reference_id", "reversed_transaction"),
            },
        ),
        (
            "Additional Info",
            {
                "fields": ("description", "metadata", "created_by"),
            },
        ),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        """Transactions are immutable - corrections are reversals."""
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        """Transactions are immutable - disable edit."""
        return False

    def has_add_permission(self, request) -> bool:
        """Transactions are only created through LedgerService."""
        return False
