"""
Treasury app for cash register accounting.

This app handles:
- Cashbox balances (one cash register per branch)
- Append-only, immutable cash transaction log
- Reversals as the only correction mechanism
- Nightly and on-demand balance reconciliation

Related apps:
    - core: Base exceptions, model mixins and service base class

Usage:
    from treasury.ledger import ledger, TransactionCategory

    # Record cash received for an order
    txn = ledger.record_income(
        cashbox,
        Decimal("45.00"),
        TransactionCategory.PAYMENT,
        description="Payment for order #1042",
        actor=request.user,
    )

    # Collaborator-level helpers
    from treasury.postings import CashPostingService

    CashPostingService.record_payment(cashbox, amount, payment_id, order_id, actor)
"""
