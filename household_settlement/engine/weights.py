"""
Weight Calculator

Turns income declarations into apportionment weights.

All arithmetic is done with `fractions.Fraction`, so the weights sum to
exactly 1 and two runs on the same input produce identical weights.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from fractions import Fraction

from household_settlement.models.ledger import (
    HouseholdPolicy,
    IncomeDeclaration,
    MissingIncomePolicy,
    WeightingMode,
)
from household_settlement.models.settlement import ApportionmentWeight


# Undated declarations sort before any dated one
UNDATED = datetime.min.replace(tzinfo=timezone.utc)


def latest_declarations(
    incomes: Iterable[IncomeDeclaration],
) -> dict[str, IncomeDeclaration]:
    """
    Pick one declaration per member.

    The latest `declared_at` wins and an undated declaration loses to any
    dated one. On equal timestamps the one listed later wins.
    """
    chosen: dict[str, tuple[tuple, IncomeDeclaration]] = {}
    for position, declaration in enumerate(incomes):
        key = (declaration.declared_at or UNDATED, position)
        current = chosen.get(declaration.member_id)
        if current is None or key > current[0]:
            chosen[declaration.member_id] = (key, declaration)
    return {member_id: decl for member_id, (_, decl) in chosen.items()}


def equal_weights(member_ids: Sequence[str]) -> list[ApportionmentWeight]:
    """1/N for every member."""
    ordered = sorted(set(member_ids))
    if not ordered:
        return []
    share = Fraction(1, len(ordered))
    return [ApportionmentWeight(member_id=m, weight=share) for m in ordered]


def net_incomes(
    incomes: Iterable[IncomeDeclaration],
    member_ids: Sequence[str],
    missing_income_policy: MissingIncomePolicy = MissingIncomePolicy.ZERO_WEIGHT,
) -> dict[str, Fraction]:
    """
    Net income per member, with the missing-declaration policy applied.

    Declarations for people outside `member_ids` are ignored.
    """
    members = sorted(set(member_ids))
    declared = {
        member_id: decl
        for member_id, decl in latest_declarations(incomes).items()
        if member_id in members
    }

    imputed = Fraction(0)
    if missing_income_policy == MissingIncomePolicy.IMPUTE_AVERAGE and declared:
        imputed = Fraction(
            sum(decl.net_amount for decl in declared.values()),
            len(declared),
        )

    return {
        member_id: (
            Fraction(declared[member_id].net_amount)
            if member_id in declared
            else imputed
        )
        for member_id in members
    }


def compute_weights(
    incomes: Iterable[IncomeDeclaration],
    member_ids: Sequence[str],
    policy: HouseholdPolicy,
) -> list[ApportionmentWeight]:
    """
    Compute one weight per member, sorted by member id.

    EQUAL_SPLIT ignores incomes entirely. INCOME_WEIGHTED uses
    net / sum(net), falling back to equal weights when nobody has any
    net income. Never raises for missing data.
    """
    if policy.weighting_mode == WeightingMode.EQUAL_SPLIT:
        return equal_weights(member_ids)

    nets = net_incomes(incomes, member_ids, policy.missing_income_policy)
    total = sum(nets.values(), Fraction(0))
    if total == 0:
        return equal_weights(member_ids)

    return [
        ApportionmentWeight(member_id=member_id, weight=net / total)
        for member_id, net in sorted(nets.items())
    ]
