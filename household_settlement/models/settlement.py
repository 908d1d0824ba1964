"""
Settlement Models

These models describe what the settlement engine PRODUCES: weights,
balances, transfers and the persisted settlement itself.

Settlement lifecycle:
    (none) -> DRAFT -> FINALIZED

A DRAFT may be recomputed any number of times. FINALIZED is terminal;
a finalized settlement is never modified again.
"""

from datetime import datetime
from enum import Enum
from fractions import Fraction
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from household_settlement.models.ledger import HouseholdPolicy, Period, utc_now


class SettlementStatus(str, Enum):
    """
    Settlement lifecycle status.

    CRITICAL: FINALIZED is terminal. Nothing moves a settlement back to DRAFT.
    """
    DRAFT = "draft"
    FINALIZED = "finalized"


# =============================================================================
# ENGINE VALUES
# =============================================================================

class ApportionmentWeight(BaseModel):
    """A member's share of the household burden, as an exact fraction."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    member_id: str
    weight: Fraction

    @model_validator(mode='after')
    def validate_range(self) -> 'ApportionmentWeight':
        if not 0 <= self.weight <= 1:
            raise ValueError(f"Weight for {self.member_id} must be within [0, 1], got {self.weight}")
        return self


class Balance(BaseModel):
    """
    Actual paid minus fair share.

    Positive: the member is owed money. Negative: the member owes money.
    """
    model_config = ConfigDict(frozen=True)

    member_id: str
    delta_minor_units: int

    @property
    def is_creditor(self) -> bool:
        return self.delta_minor_units > 0

    @property
    def is_debtor(self) -> bool:
        return self.delta_minor_units < 0


class Transfer(BaseModel):
    """One directed payment that moves a debtor towards zero."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    from_member_id: str = Field(..., min_length=1)
    to_member_id: str = Field(..., min_length=1)
    amount_minor_units: int = Field(..., gt=0)
    description: Optional[str] = Field(default=None, max_length=200)

    @model_validator(mode='after')
    def validate_parties(self) -> 'Transfer':
        if self.from_member_id == self.to_member_id:
            raise ValueError("A transfer needs two different members")
        return self


class SettlementComputation(BaseModel):
    """
    Full output of one pure settlement computation.

    Kept around so a caller can preview a run or explain a draft
    (who paid what, who should have paid what) without persisting anything.
    """
    model_config = ConfigDict(frozen=True)

    household_id: str
    period: Period
    policy: HouseholdPolicy
    total_expenses: int = Field(..., ge=0)
    weights: tuple[ApportionmentWeight, ...]
    fair_shares: dict[str, int]
    actual_paid: dict[str, int]
    balances: tuple[Balance, ...]
    transfers: tuple[Transfer, ...]

    def transfers_into(self, member_id: str) -> int:
        """Total amount received by a member across all transfers."""
        return sum(
            t.amount_minor_units for t in self.transfers if t.to_member_id == member_id
        )

    def transfers_out_of(self, member_id: str) -> int:
        """Total amount paid by a member across all transfers."""
        return sum(
            t.amount_minor_units for t in self.transfers if t.from_member_id == member_id
        )


# =============================================================================
# PERSISTED SETTLEMENT
# =============================================================================

class Settlement(BaseModel):
    """
    A persisted settlement for one household and one month.

    `revision` increments on every draft recompute and on finalization.
    Storage backends use it as the compare-and-set token.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique settlement ID"
    )
    household_id: str = Field(..., min_length=1, max_length=100)
    period: Period
    status: SettlementStatus = Field(default=SettlementStatus.DRAFT)
    transfers: list[Transfer] = Field(default_factory=list)
    total_expenses: int = Field(
        default=0,
        ge=0,
        description="Total apportioned expense for the period, in minor units"
    )

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = Field(default=None, max_length=100)

    revision: int = Field(default=0, ge=0)

    @model_validator(mode='after')
    def validate_status(self) -> 'Settlement':
        """finalized_at is set exactly when the settlement is finalized."""
        if self.status == SettlementStatus.FINALIZED and self.finalized_at is None:
            raise ValueError("A finalized settlement needs finalized_at")
        if self.status == SettlementStatus.DRAFT and self.finalized_at is not None:
            raise ValueError("A draft settlement cannot carry finalized_at")
        return self

    @property
    def is_finalized(self) -> bool:
        return self.status == SettlementStatus.FINALIZED

    @property
    def transfer_total(self) -> int:
        """Sum of all transfer amounts."""
        return sum(t.amount_minor_units for t in self.transfers)
