"""
Installment roll-up for sale contracts.

The per-payment commission formula is the same for quick and installment
sales; this only tracks how much of the sale price has been collected.
"""
from decimal import Decimal
from typing import Any, Iterable

from pydantic import BaseModel

from estate_commissions.engine.errors import ConfigurationError
from estate_commissions.engine.money import ZERO, quantize_money, to_decimal


class InstallmentProgress(BaseModel):
    total_sale_price: Decimal
    total_paid: Decimal
    outstanding: Decimal
    installments: int
    is_settled: bool


def installment_progress(total_sale_price: Any, payments: Iterable[Any]) -> InstallmentProgress:
    price = quantize_money(to_decimal(total_sale_price, "total_sale_price"))
    amounts = [quantize_money(to_decimal(p, "gross_amount")) for p in payments]
    paid = sum(amounts, ZERO)
    outstanding = max(ZERO, price - paid)
    return InstallmentProgress(
        total_sale_price=price,
        total_paid=paid,
        outstanding=outstanding,
        installments=len(amounts),
        is_settled=outstanding == ZERO,
    )


def ensure_within_balance(total_sale_price: Any, previous_payments: Iterable[Any], amount: Any) -> Decimal:
    """Reject an installment larger than what is still owed on the sale."""
    progress = installment_progress(total_sale_price, previous_payments)
    value = quantize_money(to_decimal(amount, "gross_amount"))
    if value > progress.outstanding:
        raise ConfigurationError(
            f"installment of {value} exceeds outstanding balance {progress.outstanding} "
            f"on sale price {progress.total_sale_price}",
            "gross_amount",
            value,
        )
    return progress.outstanding - value
