"""Payment Aggregator: what each member actually paid toward shared expenses."""

from collections import defaultdict
from collections.abc import Iterable, Sequence

from household_settlement.models.ledger import SharedExpenseRecord


def aggregate_payments(
    expenses: Iterable[SharedExpenseRecord],
    member_ids: Sequence[str] = (),
) -> dict[str, int]:
    """
    Sum apportionable amounts per payer.

    Every id in `member_ids` is present (0 if they paid nothing). Payers
    outside `member_ids` are kept as well, so an inconsistent ledger shows
    up as an imbalance downstream instead of vanishing here.
    """
    paid: dict[str, int] = defaultdict(int)
    for member_id in member_ids:
        paid[member_id] = 0
    for expense in expenses:
        if expense.should_apportion:
            paid[expense.payer_member_id] += expense.amount_minor_units
    return dict(paid)


def personal_reimbursements(
    expenses: Iterable[SharedExpenseRecord],
) -> dict[str, int]:
    """
    Net position created by personal expenses paid on someone else's behalf.

    The payer is owed the amount, the beneficiary owes it. Records without
    a beneficiary, or paid by the beneficiary themselves, move nothing.
    The result always sums to zero.
    """
    net: dict[str, int] = defaultdict(int)
    for expense in expenses:
        if expense.should_apportion:
            continue
        beneficiary = expense.beneficiary_member_id
        if not beneficiary or beneficiary == expense.payer_member_id:
            continue
        net[expense.payer_member_id] += expense.amount_minor_units
        net[beneficiary] -= expense.amount_minor_units
    return dict(net)
