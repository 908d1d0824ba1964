"""Shared fixtures for the settlement tests."""

from datetime import datetime, timezone

import pytest

from household_settlement.models.ledger import (
    HouseholdPolicy,
    IncomeDeclaration,
    LedgerSnapshot,
    Member,
    Period,
    SharedExpenseRecord,
)
from household_settlement.models.settlement import ApportionmentWeight, Balance


HOUSEHOLD = "household-1"


def make_expense(payer, amount, period, **kwargs):
    return SharedExpenseRecord(
        payer_member_id=payer,
        amount_minor_units=amount,
        period=period,
        **kwargs,
    )


def make_income(member_id, gross, period, deduction=0, declared_at=None):
    values = dict(
        member_id=member_id,
        period=period,
        gross_amount=gross,
        deduction_amount=deduction,
    )
    if declared_at is not None:
        values["declared_at"] = declared_at
    return IncomeDeclaration(**values)


def make_snapshot(period, member_ids, expenses=(), incomes=(), policy=None):
    return LedgerSnapshot(
        household_id=HOUSEHOLD,
        period=period,
        members=tuple(Member(member_id=m) for m in member_ids),
        expenses=tuple(expenses),
        incomes=tuple(incomes),
        policy=policy or HouseholdPolicy(),
    )


def weights_of(**weights):
    return [ApportionmentWeight(member_id=m, weight=w) for m, w in weights.items()]


def balances_of(**deltas):
    return [Balance(member_id=m, delta_minor_units=d) for m, d in deltas.items()]


@pytest.fixture
def period():
    return Period(year=2024, month=5)


@pytest.fixture
def declared_at():
    return datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
