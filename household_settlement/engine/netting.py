"""
Netting Engine

Reduces a set of multilateral balances to a short list of bilateral
transfers (debtor -> creditor).

Greedy matching: the largest remaining debt is always paid to the largest
remaining credit. Every step brings at least one party to zero, so N
members with non-zero balances need at most N - 1 transfers.
Ties on amount go to the lower member id, which makes the output
identical across runs on identical input.
"""

import heapq
from collections.abc import Sequence
from typing import Optional

from household_settlement.engine.deltas import check_zero_sum
from household_settlement.models.settlement import Balance, Transfer


DEFAULT_TRANSFER_DESCRIPTION = "Settlement transfer"


def net_balances(
    balances: Sequence[Balance],
    description: Optional[str] = DEFAULT_TRANSFER_DESCRIPTION,
) -> list[Transfer]:
    """
    Produce the transfers that bring every balance to zero.

    Raises:
        ConsistencyFault: if the balances do not sum to zero. Netting an
            unbalanced set would silently invent or lose money.
    """
    check_zero_sum(balances)

    # Heaps of (-remaining, member_id): biggest amount first, lowest id on ties.
    debtors = [(b.delta_minor_units, b.member_id) for b in balances if b.is_debtor]
    creditors = [(-b.delta_minor_units, b.member_id) for b in balances if b.is_creditor]
    heapq.heapify(debtors)
    heapq.heapify(creditors)

    transfers: list[Transfer] = []
    while debtors and creditors:
        neg_debt, debtor = heapq.heappop(debtors)
        neg_credit, creditor = heapq.heappop(creditors)
        debt, credit = -neg_debt, -neg_credit

        amount = min(debt, credit)
        transfers.append(Transfer(
            from_member_id=debtor,
            to_member_id=creditor,
            amount_minor_units=amount,
            description=description,
        ))

        if debt > amount:
            heapq.heappush(debtors, (amount - debt, debtor))
        if credit > amount:
            heapq.heappush(creditors, (amount - credit, creditor))

    return transfers
