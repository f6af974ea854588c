"""
Reconciliation checks run on every allocation before it may be persisted.

Two invariants:
    shares      regulatory_fee + agency_share + agent_share == total_commission
    gross       total_commission + owner_amount + vat_amount + vat_on_commission == gross_amount

Both within TOLERANCE. A failing allocation is rejected as-is; no share is
nudged to force a match.
"""
from decimal import Decimal
from typing import List

from estate_commissions.engine.errors import ReconciliationError
from estate_commissions.engine.money import TOLERANCE
from estate_commissions.models.commission import CommissionAllocation

SHARES_INVARIANT = "regulatory_fee + agency_share + agent_share = total_commission"
GROSS_INVARIANT = "total_commission + owner_amount + vat_amount + vat_on_commission = gross_amount"


def _compare(invariant: str, expected: Decimal, actual: Decimal, tolerance: Decimal) -> List[ReconciliationError]:
    if abs(actual - expected) > tolerance:
        return [ReconciliationError(invariant, expected, actual)]
    return []


def check(allocation: CommissionAllocation, tolerance: Decimal = TOLERANCE) -> List[ReconciliationError]:
    """Return every failed invariant (empty list when the allocation reconciles)."""
    failures: List[ReconciliationError] = []

    sum_of_shares = allocation.regulatory_fee + allocation.agency_share + allocation.agent_share
    failures += _compare(SHARES_INVARIANT, allocation.total_commission, sum_of_shares, tolerance)

    # VAT on commission is carved out of the owner amount, so it belongs in the sum
    sum_of_allocation = (
        allocation.total_commission
        + allocation.owner_amount
        + allocation.vat_amount
        + allocation.vat_on_commission
    )
    failures += _compare(GROSS_INVARIANT, allocation.gross_amount, sum_of_allocation, tolerance)
    return failures


def validate(allocation: CommissionAllocation, tolerance: Decimal = TOLERANCE) -> CommissionAllocation:
    """Return the allocation unchanged, or raise the first ReconciliationError."""
    failures = check(allocation, tolerance)
    if failures:
        raise failures[0]
    return allocation
