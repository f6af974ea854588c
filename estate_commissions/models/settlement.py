"""
Settlement statement request model
"""
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class SettlementRequest(BaseModel):
    sale_price: Decimal = Field(..., ge=0)
    commission_amount: Decimal = Field(..., ge=0)
    vat_on_commission_amount: Optional[Decimal] = Field(None, ge=0)
    cgt_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    vat_sale_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    vat_on_commission_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    apply_vat_on_sale: Optional[bool] = None
