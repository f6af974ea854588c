"""
Sale settlement statement: capital gains tax, VAT on the sale price,
commission and VAT on commission, and what the seller is left with.
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, Field

from estate_commissions.engine.money import ZERO, quantize_money, to_decimal


class TaxEngineConfig(BaseModel):
    cgt_rate: Decimal = Decimal("0.20")
    vat_sale_rate: Decimal = Decimal("0.15")
    vat_on_commission_rate: Decimal = Decimal("0.155")
    apply_vat_on_sale: bool = False


DEFAULT_TAX_CONFIG = TaxEngineConfig()


class TaxSummary(BaseModel):
    cgt: Decimal
    vat_on_sale: Decimal
    vat_on_commission: Decimal
    commission: Decimal
    total_deductions: Decimal
    seller_net_payout: Decimal
    breakdown: Dict[str, Any] = Field(default_factory=dict)


def _positive(value: Any, field: str) -> Decimal:
    return max(ZERO, to_decimal(value, field))


def calculate_cgt(sale_price: Any, cgt_rate: Any = DEFAULT_TAX_CONFIG.cgt_rate) -> Decimal:
    return quantize_money(_positive(sale_price, "sale_price") * _positive(cgt_rate, "cgt_rate"))


def calculate_vat_on_sale(
    sale_price: Any,
    apply_vat_on_sale: bool = DEFAULT_TAX_CONFIG.apply_vat_on_sale,
    vat_sale_rate: Any = DEFAULT_TAX_CONFIG.vat_sale_rate,
) -> Decimal:
    if not apply_vat_on_sale:
        return ZERO
    return quantize_money(_positive(sale_price, "sale_price") * _positive(vat_sale_rate, "vat_sale_rate"))


def calculate_commission_vat(
    commission_amount: Any,
    vat_on_commission_rate: Any = DEFAULT_TAX_CONFIG.vat_on_commission_rate,
) -> Decimal:
    return quantize_money(
        _positive(commission_amount, "commission_amount")
        * _positive(vat_on_commission_rate, "vat_on_commission_rate")
    )


def calculate_seller_net_payout(sale_price: Any, deductions: Iterable[Any]) -> Decimal:
    total_deductions = quantize_money(sum((quantize_money(to_decimal(d, "deduction")) for d in deductions), ZERO))
    return quantize_money(max(ZERO, quantize_money(to_decimal(sale_price, "sale_price")) - total_deductions))


def generate_tax_summary(
    sale_price: Any,
    commission_amount: Any,
    vat_on_commission_amount: Optional[Any] = None,
    config: Optional[TaxEngineConfig] = None,
) -> TaxSummary:
    """
    CGT is computed first on the full sale price; VAT on commission is taken
    from the payment when it was already recorded, otherwise calculated.
    """
    config = config or DEFAULT_TAX_CONFIG
    price = quantize_money(to_decimal(sale_price, "sale_price"))
    commission = quantize_money(to_decimal(commission_amount, "commission_amount"))

    cgt = calculate_cgt(price, config.cgt_rate)
    vat_on_sale = calculate_vat_on_sale(price, config.apply_vat_on_sale, config.vat_sale_rate)
    if vat_on_commission_amount is not None:
        vat_on_commission = quantize_money(to_decimal(vat_on_commission_amount, "vat_on_commission_amount"))
    else:
        vat_on_commission = calculate_commission_vat(commission, config.vat_on_commission_rate)

    deductions = [cgt, vat_on_sale, commission, vat_on_commission]
    return TaxSummary(
        cgt=cgt,
        vat_on_sale=vat_on_sale,
        vat_on_commission=vat_on_commission,
        commission=commission,
        total_deductions=quantize_money(sum(deductions, ZERO)),
        seller_net_payout=calculate_seller_net_payout(price, deductions),
        breakdown={
            "configured_rates": {
                "cgt_rate": str(config.cgt_rate),
                "vat_sale_rate": str(config.vat_sale_rate),
                "vat_on_commission_rate": str(config.vat_on_commission_rate),
            },
            "applied_rules": {
                "cgt_first": True,
                "vat_on_sale_applied": config.apply_vat_on_sale,
                "vat_on_commission_applied": True,
                "vat_on_commission_source": "payment" if vat_on_commission_amount is not None else "calculated",
            },
        },
    )
