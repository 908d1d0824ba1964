"""
Settlement Pipeline

Weight Calculator -> Apportionment Engine -> Payment Aggregator ->
Delta Calculator -> Netting Engine, as one pure function.

No I/O, no clock, no shared state: the same snapshot always yields the
same computation, so it is safe to call from any worker.
"""

from typing import Optional

from household_settlement.engine.apportionment import apportion, apportionable_total
from household_settlement.engine.deltas import compute_balances
from household_settlement.engine.netting import DEFAULT_TRANSFER_DESCRIPTION, net_balances
from household_settlement.engine.payments import aggregate_payments, personal_reimbursements
from household_settlement.engine.weights import compute_weights
from household_settlement.models.ledger import LedgerSnapshot
from household_settlement.models.settlement import SettlementComputation


def compute_settlement(
    snapshot: LedgerSnapshot,
    transfer_description: Optional[str] = DEFAULT_TRANSFER_DESCRIPTION,
) -> SettlementComputation:
    """
    Compute fair shares, balances and transfers for one household month.

    Raises:
        ConsistencyFault: if the ledger does not balance.
    """
    policy = snapshot.policy
    member_ids = snapshot.active_member_ids

    weights = compute_weights(snapshot.incomes, member_ids, policy)
    total = apportionable_total(snapshot.expenses)
    fair_shares = apportion(total, weights, policy.rounding_mode)
    actual_paid = aggregate_payments(snapshot.expenses, member_ids)

    adjustments = None
    if policy.include_personal_reimbursements:
        adjustments = personal_reimbursements(snapshot.expenses)

    balances = compute_balances(fair_shares, actual_paid, member_ids, adjustments)
    transfers = net_balances(balances, description=transfer_description)

    return SettlementComputation(
        household_id=snapshot.household_id,
        period=snapshot.period,
        policy=policy,
        total_expenses=total,
        weights=tuple(weights),
        fair_shares=fair_shares,
        actual_paid=actual_paid,
        balances=tuple(balances),
        transfers=tuple(transfers),
    )
