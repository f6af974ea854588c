"""
Sales contract models
"""
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class SalesContractCreate(BaseModel):
    property_id: Optional[str] = None
    manual_property_address: Optional[str] = None
    buyer_name: str = Field(..., min_length=1, max_length=200)
    seller_name: Optional[str] = Field(None, max_length=200)
    currency: Optional[str] = None
    total_sale_price: Decimal = Field(..., gt=0)
    commission_percent: Optional[Decimal] = None
    prea_percent_of_commission: Optional[Decimal] = None
    agency_percent_remaining: Optional[Decimal] = None
    agent_percent_remaining: Optional[Decimal] = None
    reference: Optional[str] = None
