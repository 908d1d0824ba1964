"""Scenario tests for the composed settlement computation."""

import random

import pytest

from household_settlement.engine import ConsistencyFault, compute_settlement
from household_settlement.models.ledger import (
    HouseholdPolicy,
    MissingIncomePolicy,
    RoundingMode,
    WeightingMode,
)

from tests.conftest import make_expense, make_income, make_snapshot


def as_tuples(transfers):
    return [(t.from_member_id, t.to_member_id, t.amount_minor_units) for t in transfers]


class TestSettlementScenarios:
    """End-to-end computations on small households."""

    def test_weighted_apportionment(self, period):
        """Test A=300000, B=100000, A paid 1000: B pays A 250."""
        snapshot = make_snapshot(
            period,
            ["A", "B"],
            expenses=[make_expense("A", 1000, period)],
            incomes=[make_income("A", 300000, period), make_income("B", 100000, period)],
        )

        result = compute_settlement(snapshot)

        assert result.total_expenses == 1000
        assert result.fair_shares == {"A": 750, "B": 250}
        assert result.actual_paid == {"A": 1000, "B": 0}
        assert as_tuples(result.transfers) == [("B", "A", 250)]
        assert result.transfers[0].description == "Settlement transfer"

    def test_even_weights_fallback(self, period):
        """Test zero incomes split 100 as [34, 33, 33]."""
        snapshot = make_snapshot(
            period,
            ["A", "B", "C"],
            expenses=[make_expense("A", 100, period)],
            incomes=[make_income(m, 0, period) for m in ("A", "B", "C")],
        )

        result = compute_settlement(snapshot)

        assert result.fair_shares == {"A": 34, "B": 33, "C": 33}
        assert as_tuples(result.transfers) == [("B", "A", 33), ("C", "A", 33)]

    def test_simple_netting(self, period):
        """Test A:+300, B:-100, C:-200 from ledger data."""
        policy = HouseholdPolicy(weighting_mode=WeightingMode.EQUAL_SPLIT)
        # T = 600, fair share 200 each; A paid 500, B paid 100, C paid 0
        snapshot = make_snapshot(
            period,
            ["A", "B", "C"],
            expenses=[make_expense("A", 500, period), make_expense("B", 100, period)],
            policy=policy,
        )

        result = compute_settlement(snapshot)

        deltas = {b.member_id: b.delta_minor_units for b in result.balances}
        assert deltas == {"A": 300, "B": -100, "C": -200}
        assert set(as_tuples(result.transfers)) == {("C", "A", 200), ("B", "A", 100)}
        assert len(result.transfers) == 2

    def test_no_expenses(self, period):
        """Test an empty month yields no transfers."""
        result = compute_settlement(make_snapshot(period, ["A", "B"]))
        assert result.total_expenses == 0
        assert result.transfers == ()
        assert all(b.delta_minor_units == 0 for b in result.balances)

    def test_personal_expenses_ignored_by_default(self, period):
        """Test unflagged records take no part in the settlement."""
        snapshot = make_snapshot(
            period,
            ["A", "B"],
            expenses=[
                make_expense("A", 100, period),
                make_expense("B", 5000, period, should_apportion=False, beneficiary_member_id="A"),
            ],
            policy=HouseholdPolicy(weighting_mode=WeightingMode.EQUAL_SPLIT),
        )

        result = compute_settlement(snapshot)

        assert result.total_expenses == 100
        assert as_tuples(result.transfers) == [("B", "A", 50)]

    def test_personal_reimbursements_when_enabled(self, period):
        """Test a personal expense paid for someone else is settled on opt-in."""
        snapshot = make_snapshot(
            period,
            ["A", "B"],
            expenses=[
                make_expense("A", 100, period),
                make_expense("B", 300, period, should_apportion=False, beneficiary_member_id="A"),
            ],
            policy=HouseholdPolicy(
                weighting_mode=WeightingMode.EQUAL_SPLIT,
                include_personal_reimbursements=True,
            ),
        )

        result = compute_settlement(snapshot)

        # A: +50 shared, -300 personal; B: -50 shared, +300 personal
        assert as_tuples(result.transfers) == [("A", "B", 250)]

    def test_inactive_members_are_left_out(self, period):
        """Test an inactive member neither pays nor is owed."""
        snapshot = make_snapshot(
            period,
            ["A", "B"],
            expenses=[make_expense("A", 100, period)],
            policy=HouseholdPolicy(weighting_mode=WeightingMode.EQUAL_SPLIT),
        )
        snapshot = snapshot.model_copy(update={
            "members": snapshot.members + (snapshot.members[0].model_copy(
                update={"member_id": "C", "is_active": False}
            ),),
        })

        result = compute_settlement(snapshot)

        assert set(result.fair_shares) == {"A", "B"}
        assert as_tuples(result.transfers) == [("B", "A", 50)]

    def test_payer_outside_household_aborts(self, period):
        """Test that a non-member payer is a consistency fault, not a fix-up."""
        snapshot = make_snapshot(
            period,
            ["A", "B"],
            expenses=[make_expense("Z", 100, period)],
        )
        with pytest.raises(ConsistencyFault) as exc_info:
            compute_settlement(snapshot)
        assert exc_info.value.imbalance == -100

    def test_missing_income_zero_weight_by_default(self, period):
        """Test an undeclared member owes nothing under the default policy."""
        snapshot = make_snapshot(
            period,
            ["A", "B"],
            expenses=[make_expense("B", 1000, period)],
            incomes=[make_income("A", 5000, period)],
        )

        result = compute_settlement(snapshot)

        assert result.fair_shares == {"A": 1000, "B": 0}
        assert as_tuples(result.transfers) == [("A", "B", 1000)]

    def test_missing_income_impute_average(self, period):
        """Test IMPUTE_AVERAGE gives an undeclared member the average weight."""
        snapshot = make_snapshot(
            period,
            ["A", "B", "C"],
            expenses=[make_expense("A", 900, period)],
            incomes=[make_income("A", 1000, period), make_income("B", 2000, period)],
            policy=HouseholdPolicy(missing_income_policy=MissingIncomePolicy.IMPUTE_AVERAGE),
        )

        result = compute_settlement(snapshot)

        # nets 1000, 2000, 1500 -> 200, 400, 300
        assert result.fair_shares == {"A": 200, "B": 400, "C": 300}

    def test_custom_transfer_description(self, period):
        """Test the configured transfer description reaches every transfer."""
        snapshot = make_snapshot(period, ["A", "B"], expenses=[make_expense("A", 10, period)])
        result = compute_settlement(snapshot, transfer_description="Household May")
        assert {t.description for t in result.transfers} == {"Household May"}


class TestSettlementProperties:
    """Invariants over randomly generated households."""

    @pytest.mark.parametrize("rounding_mode", list(RoundingMode))
    def test_invariants_hold(self, period, rounding_mode):
        """Test zero-sum, exact apportionment, the N-1 bound and determinism."""
        rng = random.Random(7)
        for _ in range(100):
            members = [f"m{i}" for i in range(rng.randint(1, 7))]
            expenses = [
                make_expense(rng.choice(members), rng.randint(0, 50_000), period)
                for _ in range(rng.randint(0, 12))
            ]
            incomes = [
                make_income(m, rng.randint(0, 900_000), period, deduction=rng.randint(0, 100_000))
                for m in members
                if rng.random() < 0.8
            ]
            policy = HouseholdPolicy(
                rounding_mode=rounding_mode,
                missing_income_policy=rng.choice(list(MissingIncomePolicy)),
                weighting_mode=rng.choice(list(WeightingMode)),
            )
            snapshot = make_snapshot(period, members, expenses, incomes, policy)

            result = compute_settlement(snapshot)

            assert sum(result.fair_shares.values()) == result.total_expenses
            assert sum(b.delta_minor_units for b in result.balances) == 0
            non_zero = sum(1 for b in result.balances if b.delta_minor_units)
            assert len(result.transfers) <= max(non_zero - 1, 0)
            for b in result.balances:
                if b.is_creditor:
                    assert result.transfers_into(b.member_id) == b.delta_minor_units
                if b.is_debtor:
                    assert result.transfers_out_of(b.member_id) == -b.delta_minor_units
            assert compute_settlement(snapshot) == result
