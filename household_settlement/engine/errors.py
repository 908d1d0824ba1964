"""
Settlement Error Taxonomy

Every failure the lifecycle manager reports is one of these.
`code` is stable and safe to hand to an HTTP layer; `retryable` tells the
caller whether trying again can help.
"""

from typing import Optional
from uuid import UUID

from household_settlement.models.validation import ValidationIssue


class SettlementError(Exception):
    """Base exception for settlement errors."""

    code = "settlement_error"
    retryable = False


class ValidationError(SettlementError):
    """Caller input or ledger snapshot is unusable. Nothing was written."""

    code = "validation_error"

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)


class ConflictError(SettlementError):
    """The settlement is in a state that forbids the requested transition."""

    code = "conflict"

    def __init__(self, message: str, settlement_id: Optional[UUID] = None):
        self.settlement_id = settlement_id
        super().__init__(message)


class NotFoundError(ConflictError):
    """No settlement with the requested id."""

    code = "not_found"


class ConsistencyFault(SettlementError):
    """
    Balances do not sum to zero.

    FATAL: this means the ledger itself is inconsistent (for example an
    expense paid by someone outside the household). Retrying cannot help
    and the balances must never be patched up to hide it.
    """

    code = "consistency_fault"

    def __init__(self, imbalance: int, message: Optional[str] = None):
        self.imbalance = imbalance
        super().__init__(
            message or f"Balances sum to {imbalance}, expected 0"
        )


class ConcurrencyConflict(SettlementError):
    """Another operation changed the settlement first. Safe to retry."""

    code = "concurrency_conflict"
    retryable = True
