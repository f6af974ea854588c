"""
Commission pipeline – the single entry point used at payment submission.

    PaymentInput ─► extract_vat ─► compute_commission ─► split_commission
                                                     └─► compute_owner_amount
                 ─► reconciliation ─► CommissionAllocation
"""
from typing import List, Tuple

from estate_commissions.engine.calculators import (
    compute_commission,
    compute_owner_amount,
    compute_vat_on_commission,
    split_commission,
)
from estate_commissions.engine.errors import ReconciliationError
from estate_commissions.engine.reconciliation import check, validate
from estate_commissions.engine.vat import extract_vat
from estate_commissions.models.commission import CommissionAllocation, PaymentInput


def allocate(payment: PaymentInput) -> CommissionAllocation:
    """Run the calculation steps without the reconciliation gate."""
    config = payment.config

    taxable_base, vat_amount = extract_vat(
        payment.gross_amount, payment.vat_included, payment.vat_rate_percent
    )
    total_commission = compute_commission(taxable_base, config.commission_percent)
    regulatory_fee, agency_share, agent_share = split_commission(
        total_commission,
        config.prea_percent_of_commission,
        config.agency_percent_remaining,
    )
    vat_on_commission = compute_vat_on_commission(total_commission, config.vat_percent_on_commission)
    owner_amount = compute_owner_amount(
        payment.gross_amount, vat_amount, total_commission, config.vat_percent_on_commission
    )

    return CommissionAllocation(
        gross_amount=payment.gross_amount,
        vat_included=payment.vat_included,
        vat_rate_percent=payment.vat_rate_percent,
        taxable_base=taxable_base,
        vat_amount=vat_amount,
        total_commission=total_commission,
        regulatory_fee=regulatory_fee,
        agency_share=agency_share,
        agent_share=agent_share,
        vat_on_commission=vat_on_commission,
        owner_amount=owner_amount,
        config=config,
        mode=payment.mode,
        payment_id=payment.payment_id,
        payment_date=payment.payment_date,
        company_id=payment.company_id,
        property_id=payment.property_id,
        agent_id=payment.agent_id,
        currency=payment.currency,
    )


def calculate(payment: PaymentInput) -> CommissionAllocation:
    """
    Compute and verify the allocation for one payment.

    Raises ConfigurationError for invalid percentages/amounts and
    ReconciliationError when the parts do not add up.
    """
    return validate(allocate(payment))


def preview(payment: PaymentInput) -> Tuple[CommissionAllocation, List[ReconciliationError]]:
    """Live-preview variant: reconciliation failures are returned, not raised."""
    allocation = allocate(payment)
    return allocation, check(allocation)
