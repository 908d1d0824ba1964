"""
Data Models Package

This package contains all Pydantic models used in the Household Settlement system.
All data flowing through the engine must conform to these schemas.
"""

from household_settlement.models.ledger import (
    HouseholdPolicy,
    IncomeDeclaration,
    LedgerSnapshot,
    Member,
    MissingIncomePolicy,
    Period,
    RoundingMode,
    SharedExpenseRecord,
    WeightingMode,
    utc_now,
)
from household_settlement.models.settlement import (
    ApportionmentWeight,
    Balance,
    Settlement,
    SettlementComputation,
    SettlementStatus,
    Transfer,
)
from household_settlement.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from household_settlement.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "HouseholdPolicy",
    "IncomeDeclaration",
    "LedgerSnapshot",
    "Member",
    "MissingIncomePolicy",
    "Period",
    "RoundingMode",
    "SharedExpenseRecord",
    "WeightingMode",
    "utc_now",
    # Settlement models
    "ApportionmentWeight",
    "Balance",
    "Settlement",
    "SettlementComputation",
    "SettlementStatus",
    "Transfer",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
