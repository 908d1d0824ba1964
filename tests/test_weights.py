"""Tests for the Weight Calculator."""

from datetime import timedelta
from fractions import Fraction

from household_settlement.engine.weights import (
    compute_weights,
    equal_weights,
    latest_declarations,
    net_incomes,
)
from household_settlement.models.ledger import (
    HouseholdPolicy,
    MissingIncomePolicy,
    WeightingMode,
)

from tests.conftest import make_income


def as_dict(weights):
    return {w.member_id: w.weight for w in weights}


class TestLatestDeclarations:
    """Tests for duplicate declaration resolution."""

    def test_latest_declared_at_wins(self, period, declared_at):
        """Test that the most recent declaration is used."""
        older = make_income("a", 100, period, declared_at=declared_at)
        newer = make_income("a", 500, period, declared_at=declared_at + timedelta(days=1))

        chosen = latest_declarations([newer, older])

        assert chosen["a"].gross_amount == 500

    def test_equal_timestamps_later_position_wins(self, period, declared_at):
        """Test that the later list position breaks timestamp ties."""
        first = make_income("a", 100, period, declared_at=declared_at)
        second = make_income("a", 200, period, declared_at=declared_at)

        assert latest_declarations([first, second])["a"].gross_amount == 200

    def test_naive_and_aware_timestamps_compare(self, period, declared_at):
        """Test a timestamp without offset is read as UTC."""
        naive = make_income("a", 100, period, declared_at=declared_at.replace(tzinfo=None))
        aware = make_income("a", 200, period, declared_at=declared_at - timedelta(minutes=1))

        assert naive.declared_at == declared_at
        assert latest_declarations([naive, aware])["a"].gross_amount == 100

    def test_undated_loses_to_dated(self, period, declared_at):
        """Test a declaration without a timestamp never beats a dated one."""
        dated = make_income("a", 100, period, declared_at=declared_at)
        undated = make_income("a", 200, period)

        assert latest_declarations([dated, undated])["a"].gross_amount == 100

    def test_undated_duplicates_use_position(self, period):
        """Test the later of two undated declarations wins."""
        first = make_income("a", 100, period)
        second = make_income("a", 200, period)

        assert latest_declarations([first, second])["a"].gross_amount == 200


class TestNetIncomes:
    """Tests for net income derivation."""

    def test_missing_member_gets_zero_by_default(self, period):
        """Test ZERO_WEIGHT treats a missing declaration as no income."""
        nets = net_incomes([make_income("a", 1000, period)], ["a", "b"])
        assert nets == {"a": Fraction(1000), "b": Fraction(0)}

    def test_impute_average(self, period):
        """Test IMPUTE_AVERAGE uses the mean of declared net incomes."""
        incomes = [make_income("a", 1000, period), make_income("b", 2000, period, deduction=500)]
        nets = net_incomes(incomes, ["a", "b", "c"], MissingIncomePolicy.IMPUTE_AVERAGE)
        assert nets["c"] == Fraction(1250)

    def test_impute_average_with_nobody_declared(self, period):
        """Test IMPUTE_AVERAGE falls back to zero when nobody declared."""
        nets = net_incomes([], ["a", "b"], MissingIncomePolicy.IMPUTE_AVERAGE)
        assert nets == {"a": 0, "b": 0}

    def test_non_members_ignored(self, period):
        """Test declarations from outside the member list are dropped."""
        nets = net_incomes([make_income("z", 9999, period)], ["a"])
        assert nets == {"a": 0}


class TestComputeWeights:
    """Tests for compute_weights."""

    def test_income_weighted(self, period):
        """Test weights proportional to net income."""
        incomes = [make_income("a", 300000, period), make_income("b", 100000, period)]
        weights = as_dict(compute_weights(incomes, ["a", "b"], HouseholdPolicy()))
        assert weights == {"a": Fraction(3, 4), "b": Fraction(1, 4)}

    def test_weights_sum_to_exactly_one(self, period):
        """Test exact arithmetic with awkward incomes."""
        incomes = [
            make_income("a", 1, period),
            make_income("b", 1, period),
            make_income("c", 1, period),
        ]
        weights = compute_weights(incomes, ["a", "b", "c"], HouseholdPolicy())
        assert sum(w.weight for w in weights) == 1

    def test_deductions_reduce_weight(self, period):
        """Test net = gross - deduction drives the weight."""
        incomes = [
            make_income("a", 2000, period, deduction=1000),
            make_income("b", 1000, period),
        ]
        weights = as_dict(compute_weights(incomes, ["a", "b"], HouseholdPolicy()))
        assert weights["a"] == weights["b"] == Fraction(1, 2)

    def test_all_zero_incomes_fall_back_to_equal(self, period):
        """Test that zero total income gives equal weights instead of failing."""
        incomes = [make_income(m, 0, period) for m in ("a", "b", "c")]
        weights = as_dict(compute_weights(incomes, ["a", "b", "c"], HouseholdPolicy()))
        assert set(weights.values()) == {Fraction(1, 3)}

    def test_no_declarations_fall_back_to_equal(self, period):
        """Test that an undeclared household splits evenly."""
        weights = as_dict(compute_weights([], ["a", "b"], HouseholdPolicy()))
        assert weights == {"a": Fraction(1, 2), "b": Fraction(1, 2)}

    def test_equal_split_ignores_incomes(self, period):
        """Test EQUAL_SPLIT policy."""
        policy = HouseholdPolicy(weighting_mode=WeightingMode.EQUAL_SPLIT)
        incomes = [make_income("a", 900000, period)]
        weights = as_dict(compute_weights(incomes, ["a", "b"], policy))
        assert weights == {"a": Fraction(1, 2), "b": Fraction(1, 2)}

    def test_missing_declaration_gets_zero_weight(self, period):
        """Test ZERO_WEIGHT default for an undeclared member."""
        incomes = [make_income("a", 1000, period)]
        weights = as_dict(compute_weights(incomes, ["a", "b"], HouseholdPolicy()))
        assert weights == {"a": 1, "b": 0}

    def test_one_weight_per_member_sorted(self, period):
        """Test output order and completeness."""
        weights = compute_weights([], ["c", "a", "b"], HouseholdPolicy())
        assert [w.member_id for w in weights] == ["a", "b", "c"]

    def test_equal_weights_empty(self):
        """Test that no members means no weights."""
        assert equal_weights([]) == []
