"""
Treasury models - exports from submodules.

This file imports and re-exports models from the ledger submodule
so Django's migration system can discover them.
"""

from treasury.ledger.models import Cashbox, Transaction

__all__ = ["Cashbox", "Transaction"]
