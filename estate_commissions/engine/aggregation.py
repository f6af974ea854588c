"""
Aggregation of finalized allocations into report totals.

Totals are always re-derived from the full allocation list (never kept as
running counters), so calling accumulate twice over the same set gives the
same answer, and the result does not depend on input order.
"""
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from estate_commissions.engine.errors import ReconciliationError
from estate_commissions.engine.money import ZERO, quantize_money
from estate_commissions.models.commission import CommissionAllocation
from estate_commissions.models.report import (
    ContributingPayment,
    GroupBy,
    GroupTotals,
    Period,
    ReportTotals,
)

UNASSIGNED = "unassigned"
REGULATORY_BODY_KEY = "PREA"
DUPLICATE_PAYMENT_INVARIANT = "one allocation per payment_id"

# Compared in this order when reporting which amount two copies disagree on
_COMPARED_AMOUNTS = (
    "gross_amount",
    "total_commission",
    "regulatory_fee",
    "agency_share",
    "agent_share",
    "vat_on_commission",
    "owner_amount",
)

_AMOUNT: Dict[GroupBy, Callable[[CommissionAllocation], Decimal]] = {
    GroupBy.AGENT: lambda a: a.agent_share,
    GroupBy.AGENCY: lambda a: a.agency_share,
    GroupBy.REGULATORY_BODY: lambda a: a.regulatory_fee,
    GroupBy.PROPERTY: lambda a: a.total_commission,
}

_KEY: Dict[GroupBy, Callable[[CommissionAllocation], Optional[str]]] = {
    GroupBy.AGENT: lambda a: a.agent_id,
    GroupBy.AGENCY: lambda a: a.company_id,
    GroupBy.REGULATORY_BODY: lambda a: REGULATORY_BODY_KEY,
    GroupBy.PROPERTY: lambda a: a.property_id,
}


def _day(value: Optional[datetime]) -> Optional[date]:
    if value is None:
        return None
    return value.date() if isinstance(value, datetime) else value


def _unique(allocations: Iterable[CommissionAllocation]) -> List[CommissionAllocation]:
    """Drop reversed allocations and repeated copies of the same payment."""
    seen: Dict[str, CommissionAllocation] = {}
    anonymous: List[CommissionAllocation] = []
    for allocation in allocations:
        if allocation.is_reversed:
            continue
        if allocation.payment_id is None:
            anonymous.append(allocation)
            continue
        previous = seen.get(allocation.payment_id)
        if previous is None:
            seen[allocation.payment_id] = allocation
        elif previous != allocation:
            raise _conflict(allocation.payment_id, previous, allocation)
    return list(seen.values()) + anonymous


def _conflict(payment_id: str, first: CommissionAllocation, second: CommissionAllocation) -> ReconciliationError:
    left, right = first.model_dump(), second.model_dump()
    fields = sorted(name for name in left if left[name] != right[name])
    amount = next((name for name in _COMPARED_AMOUNTS if name in fields), None)
    expected = getattr(first, amount) if amount else ZERO
    actual = getattr(second, amount) if amount else ZERO
    return ReconciliationError(
        DUPLICATE_PAYMENT_INVARIANT,
        expected,
        actual,
        f"payment {payment_id} appears with two different allocations (differs in: {', '.join(fields)})",
    )


def _payment_sort_key(p: ContributingPayment) -> Tuple:
    return (p.date or date.min, p.payment_id or "", p.property_id or "", p.amount)


def accumulate(
    allocations: Iterable[CommissionAllocation],
    group_by: GroupBy,
    period: Period,
) -> ReportTotals:
    """Sum one share of each allocation per grouping key, for the month, year and all time."""
    group_by = GroupBy(group_by)
    amount_of = _AMOUNT[group_by]
    key_of = _KEY[group_by]

    totals: Dict[str, Dict[str, Decimal]] = defaultdict(
        lambda: {"monthly": ZERO, "yearly": ZERO, "total": ZERO}
    )
    payments: Dict[str, List[ContributingPayment]] = defaultdict(list)

    for allocation in _unique(allocations):
        key = key_of(allocation) or UNASSIGNED
        amount = amount_of(allocation)
        day = _day(allocation.payment_date)

        bucket = totals[key]
        if period.contains_month(day):
            bucket["monthly"] += amount
        if period.contains_year(day):
            bucket["yearly"] += amount
        bucket["total"] += amount

        payments[key].append(ContributingPayment(
            payment_id=allocation.payment_id,
            date=day,
            property_id=allocation.property_id,
            amount=amount,
        ))

    groups = [
        GroupTotals(
            key=key,
            monthly=quantize_money(bucket["monthly"]),
            yearly=quantize_money(bucket["yearly"]),
            total=quantize_money(bucket["total"]),
            payments=sorted(payments[key], key=_payment_sort_key),
        )
        for key, bucket in totals.items()
    ]

    return ReportTotals(
        group_by=group_by,
        period=period,
        monthly=quantize_money(sum((g.monthly for g in groups), ZERO)),
        yearly=quantize_money(sum((g.yearly for g in groups), ZERO)),
        total=quantize_money(sum((g.total for g in groups), ZERO)),
        groups=groups,
    )
