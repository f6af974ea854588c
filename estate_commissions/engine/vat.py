"""
VAT extraction – splits a VAT-inclusive gross into taxable base + VAT.
"""
from decimal import Decimal
from typing import Any, Tuple

from estate_commissions.engine.money import HUNDRED, ZERO, clamp, quantize_money, to_decimal


def extract_vat(gross_amount: Any, vat_included: bool, vat_rate_percent: Any) -> Tuple[Decimal, Decimal]:
    """
    Return (taxable_base, vat_amount).

    The rate is clamped to [0, 100] rather than rejected. When VAT is not
    included the gross passes through unchanged with zero VAT.
    """
    gross = to_decimal(gross_amount, "gross_amount")
    if not vat_included:
        return quantize_money(gross, "gross_amount"), ZERO

    rate = clamp(to_decimal(vat_rate_percent, "vat_rate_percent"), ZERO, HUNDRED) / HUNDRED
    taxable_base = quantize_money(gross / (1 + rate), "gross_amount")
    # base + vat must give back the gross exactly, so VAT is taken from the rounded base
    vat_amount = quantize_money(max(ZERO, gross - taxable_base))
    return taxable_base, vat_amount


def add_vat(taxable_base: Any, vat_rate_percent: Any) -> Decimal:
    """Inverse of extract_vat: gross = base * (1 + rate)."""
    rate = clamp(to_decimal(vat_rate_percent, "vat_rate_percent"), ZERO, HUNDRED) / HUNDRED
    return quantize_money(to_decimal(taxable_base, "taxable_base") * (1 + rate))
