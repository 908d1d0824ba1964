"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for settlement storage.
This allows us to:
1. Use a relational database with real transactions in production
2. Use in-memory storage for testing
3. Keep the lifecycle rules decoupled from the storage implementation

Both write operations are atomic from the caller's point of view:
- upsert_draft is keyed by (household_id, period); two runs for the same
  key can never leave a mixed transfer list behind.
- mark_finalized is a compare-and-set on (status, revision).
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Optional
from uuid import UUID

from household_settlement.models.audit import AuditEvent
from household_settlement.models.ledger import Period
from household_settlement.models.settlement import (
    Settlement,
    SettlementStatus,
    Transfer,
)


class SettlementStorageInterface(ABC):
    """
    Abstract interface for settlement storage operations.

    Any storage implementation (SQL, in-memory, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def upsert_draft(
        self,
        household_id: str,
        period: Period,
        transfers: Sequence[Transfer],
        total_expenses: int,
    ) -> Settlement:
        """
        Create or replace the DRAFT settlement for a household month.

        An existing draft keeps its id and created_at; its transfers and
        total are replaced and its revision goes up by one.

        Returns:
            The stored settlement

        Raises:
            ConflictError: If the settlement for this month is FINALIZED
            ConcurrencyConflict: If a concurrent run won the race
            StorageError: If the backend fails
        """
        pass

    @abstractmethod
    async def mark_finalized(
        self,
        settlement_id: UUID,
        expected_revision: Optional[int] = None,
        finalized_by: Optional[str] = None,
    ) -> Settlement:
        """
        Atomically move a DRAFT to FINALIZED.

        Args:
            settlement_id: Settlement to finalize
            expected_revision: Revision the caller last saw; None skips the check
            finalized_by: Who finalized it

        Raises:
            NotFoundError: If no such settlement exists
            ConflictError: If it is already FINALIZED
            ConcurrencyConflict: If the draft was recomputed since expected_revision
        """
        pass

    @abstractmethod
    async def get_by_id(self, settlement_id: UUID) -> Optional[Settlement]:
        """
        Retrieve a settlement by its ID.

        Returns:
            The settlement if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_by_period(
        self,
        household_id: str,
        period: Period,
    ) -> Optional[Settlement]:
        """
        Retrieve the settlement for a household month, if any.
        """
        pass

    @abstractmethod
    async def list_for_household(
        self,
        household_id: str,
        status: Optional[SettlementStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Settlement]:
        """
        List a household's settlements, newest period first.

        Args:
            household_id: Household to list
            status: Only settlements in this status
            limit: Maximum number of results
            offset: Number of results to skip
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one settlement run).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_settlement(
        self,
        settlement_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get the history of one settlement.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage backend failures."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class LedgerReadError(StorageError):
    """The ledger backend returned data that cannot be read as records."""
    pass
