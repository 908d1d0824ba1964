"""
In-Memory Ledger and Static Policy Resolver

InMemoryLedger is what tests and scripts feed the engine with.
StaticPolicyResolver serves the configured default policy, with optional
per-household overrides.
"""

import threading
from typing import Optional

from household_settlement.config.settings import EngineSettings
from household_settlement.models.ledger import (
    HouseholdPolicy,
    IncomeDeclaration,
    LedgerSnapshot,
    Member,
    Period,
    SharedExpenseRecord,
)
from household_settlement.services.ledger.interface import (
    LedgerReaderInterface,
    PolicyResolverInterface,
)


class InMemoryLedger(LedgerReaderInterface):
    """
    A ledger held in process memory.

    load_snapshot takes the lock once, so a snapshot never mixes data from
    before and after a concurrent write.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._members: dict[str, list[Member]] = {}
        self._expenses: dict[str, list[SharedExpenseRecord]] = {}
        self._incomes: dict[str, list[IncomeDeclaration]] = {}

    # Writes (the ledger side, not the engine)

    def add_member(self, household_id: str, member: Member) -> None:
        with self._lock:
            self._members.setdefault(household_id, []).append(member)

    def record_expense(self, household_id: str, expense: SharedExpenseRecord) -> None:
        with self._lock:
            self._expenses.setdefault(household_id, []).append(expense)

    def declare_income(self, household_id: str, declaration: IncomeDeclaration) -> None:
        with self._lock:
            self._incomes.setdefault(household_id, []).append(declaration)

    # Reads

    def _members_of(self, household_id: str) -> list[Member]:
        return list(self._members.get(household_id, []))

    def _expenses_of(self, household_id: str, period: Period) -> list[SharedExpenseRecord]:
        return [e for e in self._expenses.get(household_id, []) if e.period == period]

    def _incomes_of(self, household_id: str, period: Period) -> list[IncomeDeclaration]:
        return [i for i in self._incomes.get(household_id, []) if i.period == period]

    async def load_members(self, household_id: str) -> list[Member]:
        with self._lock:
            return self._members_of(household_id)

    async def load_expenses(
        self,
        household_id: str,
        period: Period,
    ) -> list[SharedExpenseRecord]:
        with self._lock:
            return self._expenses_of(household_id, period)

    async def load_incomes(
        self,
        household_id: str,
        period: Period,
    ) -> list[IncomeDeclaration]:
        with self._lock:
            return self._incomes_of(household_id, period)

    async def load_snapshot(
        self,
        household_id: str,
        period: Period,
        policy: HouseholdPolicy,
    ) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                household_id=household_id,
                period=period,
                members=tuple(self._members_of(household_id)),
                expenses=tuple(self._expenses_of(household_id, period)),
                incomes=tuple(self._incomes_of(household_id, period)),
                policy=policy,
            )


class StaticPolicyResolver(PolicyResolverInterface):
    """Default policy for everyone, unless a household has an override."""

    def __init__(
        self,
        default: Optional[HouseholdPolicy] = None,
        overrides: Optional[dict[str, HouseholdPolicy]] = None,
    ):
        self._default = default or HouseholdPolicy()
        self._overrides = dict(overrides or {})

    @classmethod
    def from_settings(cls, settings: Optional[EngineSettings] = None) -> "StaticPolicyResolver":
        settings = settings or EngineSettings()
        return cls(default=HouseholdPolicy(
            weighting_mode=settings.weighting_mode,
            rounding_mode=settings.rounding_mode,
            missing_income_policy=settings.missing_income_policy,
            include_personal_reimbursements=settings.include_personal_reimbursements,
        ))

    @property
    def default(self) -> HouseholdPolicy:
        return self._default

    def set_policy(self, household_id: str, policy: HouseholdPolicy) -> None:
        self._overrides[household_id] = policy

    async def get_policy(self, household_id: str) -> HouseholdPolicy:
        return self._overrides.get(household_id, self._default)
