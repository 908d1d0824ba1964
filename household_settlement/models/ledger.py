"""
Ledger Models for Household Settlement

These models describe what the settlement engine READS: members,
income declarations, shared expense records and the household policy.
They are owned by the external ledger and are never mutated by the engine,
so every model here is frozen.

DESIGN DECISION: All amounts are non-negative integers in the currency's
minor unit. There is no Decimal and no float anywhere in the ledger; the
currency is assumed to be fixed for the household.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


MIN_YEAR = 2000
MAX_YEAR = 2100


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Policy knobs
# =============================================================================

class WeightingMode(str, Enum):
    """How the household splits shared expenses."""
    INCOME_WEIGHTED = "income_weighted"
    EQUAL_SPLIT = "equal_split"


class RoundingMode(str, Enum):
    """
    Where the leftover minor units go after every share is floored.

    Both modes keep the sum of shares exactly equal to the total.
    """
    LARGEST_REMAINDER = "largest_remainder"          # Hamilton method
    LARGEST_SHARE_ABSORBS = "largest_share_absorbs"  # whole remainder to the top weight


class MissingIncomePolicy(str, Enum):
    """
    Treatment of an active member who has no income declaration
    while others do.
    """
    ZERO_WEIGHT = "zero_weight"        # counts as zero income
    IMPUTE_AVERAGE = "impute_average"  # counts as the average declared net income


# =============================================================================
# CORE LEDGER MODELS
# =============================================================================

class Period(BaseModel):
    """A settlement period: one calendar month."""
    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=MIN_YEAR, le=MAX_YEAR)
    month: int = Field(..., ge=1, le=12)

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.year, self.month)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def next_first_day(self) -> date:
        if self.month == 12:
            return date(self.year + 1, 1, 1)
        return date(self.year, self.month + 1, 1)

    def contains(self, day: date) -> bool:
        """Check whether a calendar date falls inside this month."""
        return self.first_day <= day < self.next_first_day

    @classmethod
    def parse(cls, label: str) -> "Period":
        """Parse a 'YYYY-MM' label."""
        year, _, month = label.strip().partition("-")
        return cls(year=int(year), month=int(month))

    def __str__(self) -> str:
        return self.label


class Member(BaseModel):
    """A household participant."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    member_id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Stable member identifier"
    )
    display_name: Optional[str] = Field(
        default=None,
        max_length=200
    )
    is_active: bool = Field(
        default=True,
        description="Inactive members are left out of settlement runs"
    )


class IncomeDeclaration(BaseModel):
    """
    A member's declared income for one period.

    Used only to derive apportionment weights. A declaration without
    `declared_at` ranks below every dated one for the same member.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    member_id: str = Field(..., min_length=1, max_length=100)
    period: Period
    gross_amount: int = Field(
        ...,
        ge=0,
        description="Gross income in minor units"
    )
    deduction_amount: int = Field(
        default=0,
        ge=0,
        description="Deductions (tax, social insurance) in minor units"
    )
    declared_at: Optional[datetime] = Field(
        default=None,
        description="When the declaration was recorded; the latest one wins"
    )

    @field_validator("declared_at")
    @classmethod
    def normalize_declared_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store UTC; a timestamp without an offset is taken as UTC."""
        if v is None:
            return v
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def net_amount(self) -> int:
        """Income available for apportionment, never negative."""
        return max(0, self.gross_amount - self.deduction_amount)


class SharedExpenseRecord(BaseModel):
    """
    One expense from the household ledger.

    Only records flagged `should_apportion` take part in settlement.
    Unflagged records are personal; they are ignored unless the household
    policy settles personal reimbursements, in which case a record paid by
    one member for a different `beneficiary_member_id` moves money between
    those two.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    record_id: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Ledger identifier, for traceability only"
    )
    payer_member_id: str = Field(..., min_length=1, max_length=100)
    amount_minor_units: int = Field(
        ...,
        ge=0,
        description="Amount in the currency's minor unit"
    )
    period: Period
    should_apportion: bool = Field(
        default=True,
        description="Shared (True) or personal (False) expense"
    )
    beneficiary_member_id: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Who a personal expense was really for"
    )
    description: Optional[str] = Field(default=None, max_length=500)
    occurred_on: Optional[date] = None

    @model_validator(mode='after')
    def validate_occurred_on(self) -> 'SharedExpenseRecord':
        """The transaction date must fall inside its period."""
        if self.occurred_on and not self.period.contains(self.occurred_on):
            raise ValueError(
                f"Expense dated {self.occurred_on} is outside period {self.period.label}"
            )
        return self


class HouseholdPolicy(BaseModel):
    """The household's apportionment policy."""
    model_config = ConfigDict(frozen=True)

    weighting_mode: WeightingMode = WeightingMode.INCOME_WEIGHTED
    rounding_mode: RoundingMode = RoundingMode.LARGEST_REMAINDER
    missing_income_policy: MissingIncomePolicy = MissingIncomePolicy.ZERO_WEIGHT
    include_personal_reimbursements: bool = False


class LedgerSnapshot(BaseModel):
    """
    Everything one settlement run reads, captured at one point in time.
    """
    model_config = ConfigDict(frozen=True)

    household_id: str = Field(..., min_length=1, max_length=100)
    period: Period
    members: tuple[Member, ...] = ()
    expenses: tuple[SharedExpenseRecord, ...] = ()
    incomes: tuple[IncomeDeclaration, ...] = ()
    policy: HouseholdPolicy = Field(default_factory=HouseholdPolicy)

    @property
    def active_member_ids(self) -> list[str]:
        """Active member ids, sorted and de-duplicated."""
        return sorted({m.member_id for m in self.members if m.is_active})
