"""
Apportionment Engine

Splits the month's shared expense total across members according to their
weights, in whole minor units, so that the shares add up to the total
EXACTLY.

Method:
1. raw_i = T * weight_i (exact fraction)
2. share_i = floor(raw_i)
3. R = T - sum(share_i) leftover units are handed out according to the
   rounding mode; a zero-weight member never receives one.
"""

import math
from collections.abc import Iterable, Sequence
from fractions import Fraction

from household_settlement.models.ledger import RoundingMode, SharedExpenseRecord
from household_settlement.models.settlement import ApportionmentWeight


def apportionable_total(expenses: Iterable[SharedExpenseRecord]) -> int:
    """T: sum of every expense flagged for apportionment."""
    return sum(e.amount_minor_units for e in expenses if e.should_apportion)


def apportion(
    total: int,
    weights: Sequence[ApportionmentWeight],
    rounding_mode: RoundingMode = RoundingMode.LARGEST_REMAINDER,
) -> dict[str, int]:
    """
    Return member_id -> fair share, summing exactly to `total`.

    Raises ValueError for a negative total or weights that do not sum to 1;
    both mean the caller built its inputs wrong.
    """
    if total < 0:
        raise ValueError(f"Total to apportion must be non-negative, got {total}")
    if not weights:
        if total:
            raise ValueError("Cannot apportion a non-zero total without weights")
        return {}

    weight_sum = sum((w.weight for w in weights), Fraction(0))
    if weight_sum != 1:
        raise ValueError(f"Weights must sum to 1, got {weight_sum}")

    shares: dict[str, int] = {}
    fractional: dict[str, Fraction] = {}
    for w in weights:
        raw = total * w.weight
        floored = math.floor(raw)
        shares[w.member_id] = floored
        fractional[w.member_id] = raw - floored

    remainder = total - sum(shares.values())
    if remainder == 0:
        return shares

    eligible = [w for w in weights if w.weight > 0]

    if rounding_mode == RoundingMode.LARGEST_SHARE_ABSORBS:
        absorber = min(eligible, key=lambda w: (-w.weight, w.member_id))
        shares[absorber.member_id] += remainder
        return shares

    # Hamilton: largest fractional part first, lowest member id on ties.
    # Each fractional part is < 1 and they sum to R, so at least R members
    # have a non-zero part and one unit each is enough.
    recipients = sorted(
        eligible,
        key=lambda w: (-fractional[w.member_id], w.member_id),
    )
    for w in recipients[:remainder]:
        shares[w.member_id] += 1

    return shares
