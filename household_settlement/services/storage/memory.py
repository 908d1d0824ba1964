"""
In-Memory Storage Implementation

Same semantics as the SQL backend, for tests and single-process use.
A single lock makes each operation atomic; settlements are copied on the
way in and out so callers can never mutate stored state.
"""

import threading
from collections.abc import Sequence
from typing import Optional
from uuid import UUID

from household_settlement.engine.errors import (
    ConcurrencyConflict,
    ConflictError,
    NotFoundError,
)
from household_settlement.models.audit import AuditEvent
from household_settlement.models.ledger import Period, utc_now
from household_settlement.models.settlement import (
    Settlement,
    SettlementStatus,
    Transfer,
)
from household_settlement.services.storage.interface import (
    AuditStorageInterface,
    SettlementStorageInterface,
)


class InMemorySettlementStorage(SettlementStorageInterface):
    """Dictionary-backed settlement storage."""

    def __init__(self):
        self._lock = threading.Lock()
        self._by_id: dict[UUID, Settlement] = {}
        self._by_key: dict[tuple[str, Period], UUID] = {}

    async def upsert_draft(
        self,
        household_id: str,
        period: Period,
        transfers: Sequence[Transfer],
        total_expenses: int,
    ) -> Settlement:
        with self._lock:
            existing_id = self._by_key.get((household_id, period))
            existing = self._by_id.get(existing_id) if existing_id else None

            if existing is None:
                settlement = Settlement(
                    household_id=household_id,
                    period=period,
                    transfers=list(transfers),
                    total_expenses=total_expenses,
                )
            elif existing.is_finalized:
                raise ConflictError(
                    f"Settlement for {period.label} is already finalized",
                    settlement_id=existing.id,
                )
            else:
                settlement = existing.model_copy(update={
                    "transfers": list(transfers),
                    "total_expenses": total_expenses,
                    "updated_at": utc_now(),
                    "revision": existing.revision + 1,
                })

            self._by_id[settlement.id] = settlement
            self._by_key[(household_id, period)] = settlement.id
            return settlement.model_copy(deep=True)

    async def mark_finalized(
        self,
        settlement_id: UUID,
        expected_revision: Optional[int] = None,
        finalized_by: Optional[str] = None,
    ) -> Settlement:
        with self._lock:
            existing = self._by_id.get(settlement_id)
            if existing is None:
                raise NotFoundError(f"Settlement not found: {settlement_id}")
            if existing.is_finalized:
                raise ConflictError(
                    "Settlement is already finalized",
                    settlement_id=settlement_id,
                )
            if expected_revision is not None and existing.revision != expected_revision:
                raise ConcurrencyConflict(
                    f"Settlement {settlement_id} changed (revision "
                    f"{existing.revision}, expected {expected_revision})"
                )

            now = utc_now()
            finalized = existing.model_copy(update={
                "status": SettlementStatus.FINALIZED,
                "finalized_at": now,
                "finalized_by": finalized_by,
                "updated_at": now,
                "revision": existing.revision + 1,
            })
            self._by_id[settlement_id] = finalized
            return finalized.model_copy(deep=True)

    async def get_by_id(self, settlement_id: UUID) -> Optional[Settlement]:
        with self._lock:
            settlement = self._by_id.get(settlement_id)
            return settlement.model_copy(deep=True) if settlement else None

    async def get_by_period(
        self,
        household_id: str,
        period: Period,
    ) -> Optional[Settlement]:
        with self._lock:
            settlement_id = self._by_key.get((household_id, period))
            if settlement_id is None:
                return None
            return self._by_id[settlement_id].model_copy(deep=True)

    async def list_for_household(
        self,
        household_id: str,
        status: Optional[SettlementStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Settlement]:
        with self._lock:
            settlements = [
                s for s in self._by_id.values()
                if s.household_id == household_id
                and (status is None or s.status == status)
            ]
        settlements.sort(key=lambda s: s.period.sort_key, reverse=True)
        return [s.model_copy(deep=True) for s in settlements[offset:offset + limit]]


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit storage."""

    def __init__(self):
        self._lock = threading.Lock()
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        with self._lock:
            return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        with self._lock:
            self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_settlement(
        self,
        settlement_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.settlement_id == settlement_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
