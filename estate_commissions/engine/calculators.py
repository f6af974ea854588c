"""
Commission calculators.

    taxable base ──► total commission ──► PREA fee
                                     └──► remainder ──► agency share
                                                    └──► agent share

    gross − VAT − commission − VAT on commission ──► owner / seller amount

Every output is rounded to cents independently, so the parts may differ
from the whole by a cent or two; reconciliation uses a tolerance for that.
"""
from decimal import Decimal
from typing import Any, Optional, Tuple

from estate_commissions.engine.errors import ConfigurationError
from estate_commissions.engine.money import (
    HUNDRED,
    ZERO,
    clamp,
    quantize_money,
    require_percent,
    to_decimal,
)


def compute_commission(taxable_base: Any, commission_percent: Any) -> Decimal:
    """Total commission owed on a payment."""
    base = to_decimal(taxable_base, "taxable_base")
    if base < ZERO:
        raise ConfigurationError(f"taxable_base cannot be negative, got {base}", "taxable_base", base)
    percent = require_percent(commission_percent, "commission_percent")
    return quantize_money(base * percent / HUNDRED)


def split_commission(
    total_commission: Any,
    prea_percent_of_commission: Any,
    agency_percent_remaining: Any,
    agent_percent_remaining: Optional[Any] = None,
) -> Tuple[Decimal, Decimal, Decimal]:
    """
    Waterfall split of a commission into (regulatory_fee, agency_share, agent_share).

    The agent percentage is always re-derived as 100 - agency; a supplied
    value is accepted for signature compatibility but never trusted.
    """
    total = to_decimal(total_commission, "total_commission")
    if total < ZERO:
        raise ConfigurationError(
            f"total_commission cannot be negative, got {total}", "total_commission", total
        )
    prea = require_percent(prea_percent_of_commission, "prea_percent_of_commission")
    agency = require_percent(agency_percent_remaining, "agency_percent_remaining")
    agent = HUNDRED - agency

    regulatory_fee = quantize_money(total * prea / HUNDRED)
    remainder = max(ZERO, total - regulatory_fee)
    agency_share = quantize_money(remainder * agency / HUNDRED)
    agent_share = quantize_money(remainder * agent / HUNDRED)
    return regulatory_fee, agency_share, agent_share


def compute_vat_on_commission(total_commission: Any, vat_percent_on_commission: Any) -> Decimal:
    """VAT charged on the commission itself; the rate is a fraction clamped to [0, 1]."""
    rate = clamp(to_decimal(vat_percent_on_commission, "vat_percent_on_commission"), ZERO, Decimal("1"))
    return quantize_money(rate * to_decimal(total_commission, "total_commission"))


def compute_owner_amount(
    gross_amount: Any,
    vat_amount: Any,
    total_commission: Any,
    vat_percent_on_commission: Any,
) -> Decimal:
    """Amount due to the owner (rental) or seller (sale), floored at zero."""
    gross = to_decimal(gross_amount, "gross_amount")
    if gross < ZERO:
        raise ConfigurationError(f"gross_amount cannot be negative, got {gross}", "gross_amount", gross)
    commission = to_decimal(total_commission, "total_commission")

    net_of_vat = max(ZERO, gross - to_decimal(vat_amount, "vat_amount"))
    vat_on_commission = compute_vat_on_commission(commission, vat_percent_on_commission)
    return quantize_money(max(ZERO, net_of_vat - commission - vat_on_commission))
