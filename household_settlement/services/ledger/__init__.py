"""
Ledger Services Package

Read-only access to the household ledger and household policies.
"""

from household_settlement.services.ledger.interface import (
    LedgerReaderInterface,
    PolicyResolverInterface,
)
from household_settlement.services.ledger.memory import (
    InMemoryLedger,
    StaticPolicyResolver,
)
from household_settlement.services.ledger.google_sheets import (
    GoogleSheetsLedgerReader,
    GoogleSheetsPolicyResolver,
)

__all__ = [
    # Interfaces
    "LedgerReaderInterface",
    "PolicyResolverInterface",
    # Implementations
    "GoogleSheetsLedgerReader",
    "GoogleSheetsPolicyResolver",
    "InMemoryLedger",
    "StaticPolicyResolver",
]
