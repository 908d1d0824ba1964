"""Validation package."""

from household_settlement.validation.validator import LedgerValidator

__all__ = ["LedgerValidator"]
