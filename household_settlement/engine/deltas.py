"""
Delta Calculator

delta_i = actual_paid_i - fair_share_i

The deltas of a consistent ledger sum to zero, because every apportioned
expense was paid by exactly one household member. If they don't, the
ledger is broken and the run must stop: the imbalance is reported as a
ConsistencyFault and never absorbed into some member's balance.
"""

from collections.abc import Mapping, Sequence
from typing import Optional

from household_settlement.engine.errors import ConsistencyFault
from household_settlement.models.settlement import Balance


def check_zero_sum(balances: Sequence[Balance]) -> None:
    """Raise ConsistencyFault unless the balances sum to exactly zero."""
    imbalance = sum(b.delta_minor_units for b in balances)
    if imbalance != 0:
        raise ConsistencyFault(imbalance)


def compute_balances(
    fair_shares: Mapping[str, int],
    actual_paid: Mapping[str, int],
    member_ids: Sequence[str],
    adjustments: Optional[Mapping[str, int]] = None,
) -> list[Balance]:
    """
    One balance per household member, sorted by member id.

    Members missing from either map count as 0. `adjustments` are extra
    zero-sum positions (personal reimbursements) added on top.

    Raises:
        ConsistencyFault: if the result does not sum to zero, including when
            money was paid or is owed by someone outside `member_ids`.
    """
    members = set(member_ids)
    adjustments = adjustments or {}

    balances = [
        Balance(
            member_id=member_id,
            delta_minor_units=(
                actual_paid.get(member_id, 0)
                - fair_shares.get(member_id, 0)
                + adjustments.get(member_id, 0)
            ),
        )
        for member_id in sorted(members)
    ]

    outsiders = sorted({
        member_id
        for source in (actual_paid, fair_shares, adjustments)
        for member_id, amount in source.items()
        if member_id not in members and amount
    })
    if outsiders:
        imbalance = sum(b.delta_minor_units for b in balances)
        raise ConsistencyFault(
            imbalance,
            f"Ledger references non-members {outsiders}; balances sum to {imbalance}",
        )

    check_zero_sum(balances)
    return balances
