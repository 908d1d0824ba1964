"""
Household Settlement - Source Package

Monthly settlement engine for a household shared-expense tracker.
Given the shared expenses and declared incomes of a household for a month,
it works out who paid what, who should have paid what, and the smallest
set of transfers that squares everyone up.

DESIGN PRINCIPLES:
1. Integer minor units and exact fractions, never floats
2. Fail early, fail visibly
3. No silent corrections (rounding remainder distribution is the one designed exception)
4. Every run and finalization is auditable
5. Ledger and storage backends are swappable
"""

__version__ = "1.0.0"
__author__ = "Household Settlement Team"
