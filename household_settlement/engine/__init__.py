"""
Settlement Engine Package

Pure, deterministic computation: weights, fair shares, balances, transfers.
"""

from household_settlement.engine.apportionment import apportion, apportionable_total
from household_settlement.engine.deltas import check_zero_sum, compute_balances
from household_settlement.engine.errors import (
    ConcurrencyConflict,
    ConflictError,
    ConsistencyFault,
    NotFoundError,
    SettlementError,
    ValidationError,
)
from household_settlement.engine.netting import DEFAULT_TRANSFER_DESCRIPTION, net_balances
from household_settlement.engine.payments import aggregate_payments, personal_reimbursements
from household_settlement.engine.pipeline import compute_settlement
from household_settlement.engine.weights import (
    compute_weights,
    equal_weights,
    latest_declarations,
    net_incomes,
)

__all__ = [
    # Computation
    "aggregate_payments",
    "apportion",
    "apportionable_total",
    "check_zero_sum",
    "compute_balances",
    "compute_settlement",
    "compute_weights",
    "equal_weights",
    "latest_declarations",
    "net_balances",
    "net_incomes",
    "personal_reimbursements",
    "DEFAULT_TRANSFER_DESCRIPTION",
    # Errors
    "ConcurrencyConflict",
    "ConflictError",
    "ConsistencyFault",
    "NotFoundError",
    "SettlementError",
    "ValidationError",
]
