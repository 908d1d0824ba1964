"""Services package."""

from household_settlement.services.ledger import (
    GoogleSheetsLedgerReader,
    GoogleSheetsPolicyResolver,
    InMemoryLedger,
    LedgerReaderInterface,
    PolicyResolverInterface,
    StaticPolicyResolver,
)
from household_settlement.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    InMemoryAuditStorage,
    InMemorySettlementStorage,
    LedgerReadError,
    SettlementStorageInterface,
    SqlSettlementStorage,
    StorageError,
)

__all__ = [
    # Ledger services
    "GoogleSheetsLedgerReader",
    "GoogleSheetsPolicyResolver",
    "InMemoryLedger",
    "LedgerReaderInterface",
    "PolicyResolverInterface",
    "StaticPolicyResolver",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "InMemoryAuditStorage",
    "InMemorySettlementStorage",
    "LedgerReadError",
    "SettlementStorageInterface",
    "SqlSettlementStorage",
    "StorageError",
]
