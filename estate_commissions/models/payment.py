"""
Payment submission models
"""
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field

from estate_commissions.models.commission import PaymentMode


class CommissionOverrides(BaseModel):
    """Per-payment percentages typed into the form; anything left empty is resolved from records."""
    commission_percent: Optional[Decimal] = None
    prea_percent_of_commission: Optional[Decimal] = None
    agency_percent_remaining: Optional[Decimal] = None
    agent_percent_remaining: Optional[Decimal] = None
    vat_percent_on_commission: Optional[Decimal] = None


class PaymentCreate(BaseModel):
    payment_type: Literal["rental", "sale"] = "rental"
    gross_amount: Decimal = Field(..., description="Amount actually paid")
    currency: Optional[str] = None
    vat_included: bool = False
    vat_rate_percent: Decimal = Field(default=Decimal("0"), description="VAT rate contained in gross_amount")
    mode: PaymentMode = PaymentMode.QUICK
    payment_date: Optional[datetime] = None

    property_id: Optional[str] = None
    sales_contract_id: Optional[str] = None
    agent_id: Optional[str] = None
    reference: Optional[str] = None
    idempotency_key: Optional[str] = Field(None, max_length=200)

    commission: CommissionOverrides = Field(default_factory=CommissionOverrides)

    model_config = {
        "json_schema_extra": {
            "example": {
                "payment_type": "sale",
                "gross_amount": "1000.00",
                "vat_included": True,
                "vat_rate_percent": "15.5",
                "mode": "installment",
                "sales_contract_id": "665f1c2e8d1b2a0012ab34cd",
                "commission": {"commission_percent": "5", "prea_percent_of_commission": "3"},
            }
        }
    }


class PaymentReverse(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
