"""
Ledger Reader and Policy Resolver Interfaces

The engine never owns ledger data. It asks a reader for a snapshot of
one household month and a resolver for the household's policy, and only
ever reads what it gets back.
"""

from abc import ABC, abstractmethod

from household_settlement.models.ledger import (
    HouseholdPolicy,
    IncomeDeclaration,
    LedgerSnapshot,
    Member,
    Period,
    SharedExpenseRecord,
)


class LedgerReaderInterface(ABC):
    """
    Abstract interface for reading the household ledger.

    Implementations must return data consistent as of one point in time;
    override load_snapshot when the backend can do better than three
    separate reads.
    """

    @abstractmethod
    async def load_members(self, household_id: str) -> list[Member]:
        """All members of the household, active or not."""
        pass

    @abstractmethod
    async def load_expenses(
        self,
        household_id: str,
        period: Period,
    ) -> list[SharedExpenseRecord]:
        """Every expense record of the household month, shared or personal."""
        pass

    @abstractmethod
    async def load_incomes(
        self,
        household_id: str,
        period: Period,
    ) -> list[IncomeDeclaration]:
        """Every income declaration of the household month, duplicates included."""
        pass

    async def load_snapshot(
        self,
        household_id: str,
        period: Period,
        policy: HouseholdPolicy,
    ) -> LedgerSnapshot:
        """Everything one settlement run needs."""
        members = await self.load_members(household_id)
        expenses = await self.load_expenses(household_id, period)
        incomes = await self.load_incomes(household_id, period)
        return LedgerSnapshot(
            household_id=household_id,
            period=period,
            members=tuple(members),
            expenses=tuple(expenses),
            incomes=tuple(incomes),
            policy=policy,
        )


class PolicyResolverInterface(ABC):
    """Abstract interface for looking up a household's apportionment policy."""

    @abstractmethod
    async def get_policy(self, household_id: str) -> HouseholdPolicy:
        """
        The household's policy.

        Households without an explicit policy get the configured default;
        this never fails for an unknown household.
        """
        pass
