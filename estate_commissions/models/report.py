"""
Commission report models (agent / agency / PREA / property roll-ups)
"""
from datetime import date as date_type
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class GroupBy(str, Enum):
    AGENT = "agent"
    AGENCY = "agency"
    REGULATORY_BODY = "regulatory_body"
    PROPERTY = "property"


class Period(BaseModel):
    """Reporting month; `monthly` totals cover this month, `yearly` its calendar year."""
    year: int = Field(..., ge=1900, le=9999)
    month: int = Field(..., ge=1, le=12)

    @classmethod
    def of(cls, day: date_type) -> "Period":
        return cls(year=day.year, month=day.month)

    def contains_month(self, day: Optional[date_type]) -> bool:
        return day is not None and day.year == self.year and day.month == self.month

    def contains_year(self, day: Optional[date_type]) -> bool:
        return day is not None and day.year == self.year


class ContributingPayment(BaseModel):
    payment_id: Optional[str] = None
    date: Optional[date_type] = None
    property_id: Optional[str] = None
    amount: Decimal


class GroupTotals(BaseModel):
    key: str
    monthly: Decimal = Decimal("0.00")
    yearly: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    payments: List[ContributingPayment] = Field(default_factory=list)


class ReportTotals(BaseModel):
    group_by: GroupBy
    period: Period
    monthly: Decimal = Decimal("0.00")
    yearly: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    groups: List[GroupTotals] = Field(default_factory=list)

    @field_validator("groups")
    @classmethod
    def _sorted(cls, v):
        return sorted(v, key=lambda g: g.key)

    def group(self, key: str) -> Optional[GroupTotals]:
        return next((g for g in self.groups if g.key == key), None)
