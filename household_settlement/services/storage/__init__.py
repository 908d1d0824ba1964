"""
Storage Services Package

Abstract interfaces and concrete implementations for settlement and audit storage.
Settlements go to SQL (transactions) or memory (tests); the audit trail can
also go to Google Sheets.
"""

from household_settlement.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerReadError,
    SettlementStorageInterface,
    StorageError,
)
from household_settlement.services.storage.memory import (
    InMemoryAuditStorage,
    InMemorySettlementStorage,
)
from household_settlement.services.storage.sql import SqlSettlementStorage
from household_settlement.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "SettlementStorageInterface",
    # Exceptions
    "ConnectionError",
    "LedgerReadError",
    "StorageError",
    # Implementations
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "InMemoryAuditStorage",
    "InMemorySettlementStorage",
    "SqlSettlementStorage",
]
