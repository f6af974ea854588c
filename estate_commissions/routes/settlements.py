"""
Settlement statement route – seller net payout after CGT, VAT and commission
"""
from fastapi import APIRouter, Depends

from estate_commissions.engine.settlement import DEFAULT_TAX_CONFIG, TaxSummary, generate_tax_summary
from estate_commissions.models.settlement import SettlementRequest
from estate_commissions.utils.auth import get_current_user

router = APIRouter(prefix="/settlements", tags=["Settlements"])


@router.post("/summary", response_model=TaxSummary)
async def settlement_summary(
    body: SettlementRequest,
    current_user: dict = Depends(get_current_user),
):
    overrides = body.model_dump(
        include={"cgt_rate", "vat_sale_rate", "vat_on_commission_rate", "apply_vat_on_sale"},
        exclude_none=True,
    )
    config = DEFAULT_TAX_CONFIG.model_copy(update=overrides)
    return generate_tax_summary(
        body.sale_price,
        body.commission_amount,
        vat_on_commission_amount=body.vat_on_commission_amount,
        config=config,
    )
