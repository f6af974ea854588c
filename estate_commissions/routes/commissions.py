"""
Commission preview routes – runs the engine without persisting anything,
so forms can show the split while the user types.
"""
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from estate_commissions.engine.pipeline import preview
from estate_commissions.models.commission import CommissionConfig, PaymentInput, PaymentMode
from estate_commissions.models.payment import CommissionOverrides
from estate_commissions.services.commission_service import resolve_config
from estate_commissions.utils.auth import get_current_user

router = APIRouter(prefix="/commissions", tags=["Commissions"])


class PreviewRequest(BaseModel):
    payment_type: str = "sale"
    gross_amount: Decimal
    vat_included: bool = False
    vat_rate_percent: Decimal = Decimal("0")
    mode: PaymentMode = PaymentMode.QUICK
    property_type: Optional[str] = None
    commission: CommissionOverrides = CommissionOverrides()


@router.post("/preview")
async def preview_commission(
    body: PreviewRequest,
    current_user: dict = Depends(get_current_user),
):
    """Return the allocation and any reconciliation failures (does not raise on them)."""
    property_doc = {"property_type": body.property_type} if body.property_type else None
    config: CommissionConfig = resolve_config(body.payment_type, body.commission, property_doc=property_doc)
    allocation, failures = preview(PaymentInput(
        gross_amount=body.gross_amount,
        vat_included=body.vat_included,
        vat_rate_percent=body.vat_rate_percent,
        config=config,
        mode=body.mode,
    ))
    return {
        "allocation": allocation.model_dump(mode="json", exclude_none=True),
        "reconciled": not failures,
        "failures": [f.to_dict() for f in failures],
    }
