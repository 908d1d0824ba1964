"""Tests for the Apportionment Engine and Payment Aggregator."""

from fractions import Fraction

import pytest

from household_settlement.engine.apportionment import apportion, apportionable_total
from household_settlement.engine.payments import aggregate_payments, personal_reimbursements
from household_settlement.models.ledger import RoundingMode

from tests.conftest import make_expense, weights_of


class TestApportion:
    """Tests for apportion."""

    def test_even_thirds(self):
        """Test 100 over three equal weights gives [34, 33, 33]."""
        third = Fraction(1, 3)
        shares = apportion(100, weights_of(a=third, b=third, c=third))
        assert shares == {"a": 34, "b": 33, "c": 33}

    def test_weighted_split(self):
        """Test 1000 at 3/4 and 1/4."""
        shares = apportion(1000, weights_of(a=Fraction(3, 4), b=Fraction(1, 4)))
        assert shares == {"a": 750, "b": 250}

    def test_largest_fractional_part_gets_the_unit(self):
        """Test Hamilton prefers the largest leftover, not the lowest id."""
        # 10 * 0.15 = 1.5, 10 * 0.85 = 8.5 -> tie on .5, lower id wins
        shares = apportion(10, weights_of(a=Fraction(15, 100), b=Fraction(85, 100)))
        assert shares == {"a": 2, "b": 8}

        # 10 * 0.12 = 1.2, 10 * 0.88 = 8.8 -> b has the larger remainder
        shares = apportion(10, weights_of(a=Fraction(12, 100), b=Fraction(88, 100)))
        assert shares == {"a": 1, "b": 9}

    def test_zero_total(self):
        """Test that nothing to split gives zero shares."""
        half = Fraction(1, 2)
        assert apportion(0, weights_of(a=half, b=half)) == {"a": 0, "b": 0}

    def test_zero_weight_member_never_gets_remainder(self):
        """Test that a zero-weight member always owes nothing."""
        shares = apportion(
            101,
            weights_of(a=Fraction(1, 2), b=Fraction(1, 2), c=Fraction(0)),
        )
        assert shares["c"] == 0
        assert sum(shares.values()) == 101

    @pytest.mark.parametrize("total", [0, 1, 2, 7, 99, 100, 101, 999_999, 1_000_003])
    def test_shares_sum_to_total(self, total):
        """Test exactness across many totals."""
        weights = weights_of(a=Fraction(1, 7), b=Fraction(2, 7), c=Fraction(4, 7))
        assert sum(apportion(total, weights).values()) == total
        assert sum(
            apportion(total, weights, RoundingMode.LARGEST_SHARE_ABSORBS).values()
        ) == total

    def test_largest_share_absorbs(self):
        """Test the whole remainder goes to the biggest weight."""
        third = Fraction(1, 3)
        shares = apportion(101, weights_of(a=third, b=third, c=third), RoundingMode.LARGEST_SHARE_ABSORBS)
        assert shares == {"a": 35, "b": 33, "c": 33}

        shares = apportion(
            11,
            weights_of(a=Fraction(1, 4), b=Fraction(3, 4)),
            RoundingMode.LARGEST_SHARE_ABSORBS,
        )
        assert shares == {"a": 2, "b": 9}

    def test_rejects_negative_total(self):
        """Test that a negative total is a programming error."""
        with pytest.raises(ValueError, match="non-negative"):
            apportion(-1, weights_of(a=Fraction(1)))

    def test_rejects_weights_not_summing_to_one(self):
        """Test that broken weights are a programming error."""
        with pytest.raises(ValueError, match="sum to 1"):
            apportion(100, weights_of(a=Fraction(1, 2), b=Fraction(1, 3)))

    def test_rejects_total_without_weights(self):
        """Test that money cannot be split between nobody."""
        with pytest.raises(ValueError):
            apportion(100, [])
        assert apportion(0, []) == {}


class TestPaymentAggregator:
    """Tests for apportionable totals and per-payer sums."""

    def test_apportionable_total_skips_personal(self, period):
        """Test that only shared expenses count toward T."""
        expenses = [
            make_expense("a", 600, period),
            make_expense("b", 400, period),
            make_expense("a", 5000, period, should_apportion=False),
        ]
        assert apportionable_total(expenses) == 1000

    def test_aggregate_defaults_to_zero(self, period):
        """Test that members who paid nothing are present with 0."""
        paid = aggregate_payments([make_expense("a", 600, period)], ["a", "b"])
        assert paid == {"a": 600, "b": 0}

    def test_aggregate_sums_per_payer(self, period):
        """Test repeated payers are summed."""
        expenses = [make_expense("a", 100, period), make_expense("a", 250, period)]
        assert aggregate_payments(expenses, ["a"]) == {"a": 350}

    def test_aggregate_keeps_outside_payers(self, period):
        """Test that a non-member payer is kept so the imbalance shows later."""
        paid = aggregate_payments([make_expense("z", 100, period)], ["a"])
        assert paid == {"a": 0, "z": 100}

    def test_personal_reimbursements(self, period):
        """Test payer credited and beneficiary debited for personal expenses."""
        expenses = [
            make_expense("a", 300, period, should_apportion=False, beneficiary_member_id="b"),
            make_expense("b", 50, period, should_apportion=False, beneficiary_member_id="b"),
            make_expense("c", 70, period, should_apportion=False),
            make_expense("a", 999, period, beneficiary_member_id="c"),
        ]
        net = personal_reimbursements(expenses)
        assert net == {"a": 300, "b": -300}
        assert sum(net.values()) == 0
