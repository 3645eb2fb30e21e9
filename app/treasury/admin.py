"""
Treasury admin configuration.

This file imports admin configurations from the ledger submodule
so Django's admin autodiscovery registers them.
"""

from treasury.ledger.admin import CashboxAdmin, TransactionAdmin

__all__ = ["CashboxAdmin", "TransactionAdmin"]
