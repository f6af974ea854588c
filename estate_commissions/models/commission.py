"""
Commission configuration, payment input and allocation models.

All three are frozen: a CommissionConfig is a snapshot copied onto each
payment, and a CommissionAllocation is never edited once computed.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from estate_commissions.engine.errors import ConfigurationError
from estate_commissions.engine.money import (
    HUNDRED,
    ZERO,
    require_percent,
    to_decimal,
)

# Company defaults observed on sales contracts and the sales payment form
DEFAULT_COMMISSION_PERCENT = Decimal("5")
DEFAULT_PREA_PERCENT = Decimal("3")
DEFAULT_AGENCY_PERCENT = Decimal("50")
DEFAULT_VAT_ON_COMMISSION = Decimal("0.155")

# Rental payments: commission rate depends on property type, agent takes 60%
RENTAL_COMMISSION_BY_PROPERTY_TYPE = {
    "residential": Decimal("15"),
    "commercial": Decimal("10"),
}
RENTAL_AGENCY_PERCENT = Decimal("40")

# Tolerance when checking that explicitly supplied agency/agent splits add up
SPLIT_SUM_EPSILON = Decimal("0.0001")


class PaymentMode(str, Enum):
    QUICK = "quick"
    INSTALLMENT = "installment"


class CommissionConfig(BaseModel):
    """Commission percentages in force when a payment is made."""

    model_config = ConfigDict(frozen=True)

    commission_percent: Decimal = DEFAULT_COMMISSION_PERCENT
    prea_percent_of_commission: Decimal = DEFAULT_PREA_PERCENT
    agency_percent_remaining: Decimal = DEFAULT_AGENCY_PERCENT
    vat_percent_on_commission: Decimal = DEFAULT_VAT_ON_COMMISSION

    @field_validator(
        "commission_percent",
        "prea_percent_of_commission",
        "agency_percent_remaining",
        mode="before",
    )
    @classmethod
    def _check_percent(cls, v, info):
        return require_percent(v, info.field_name)

    @field_validator("vat_percent_on_commission", mode="before")
    @classmethod
    def _check_vat_rate(cls, v, info):
        return require_percent(v, info.field_name, upper=Decimal("1"))

    @computed_field
    @property
    def agent_percent_remaining(self) -> Decimal:
        return HUNDRED - self.agency_percent_remaining

    def with_agency_percent(self, agency_percent: Any) -> "CommissionConfig":
        """Return a copy with a new agency split; the agent split follows."""
        return self.model_validate({**self._stored(), "agency_percent_remaining": agency_percent})

    def with_agent_percent(self, agent_percent: Any) -> "CommissionConfig":
        agent = require_percent(agent_percent, "agent_percent_remaining")
        return self.with_agency_percent(HUNDRED - agent)

    def _stored(self) -> dict:
        return {
            "commission_percent": self.commission_percent,
            "prea_percent_of_commission": self.prea_percent_of_commission,
            "agency_percent_remaining": self.agency_percent_remaining,
            "vat_percent_on_commission": self.vat_percent_on_commission,
        }

    @classmethod
    def build(
        cls,
        commission_percent: Any = None,
        prea_percent_of_commission: Any = None,
        agency_percent_remaining: Any = None,
        agent_percent_remaining: Any = None,
        vat_percent_on_commission: Any = None,
    ) -> "CommissionConfig":
        """
        Build a config from loosely-typed record fields.

        Missing values fall back to the defaults. If both the agency and the
        agent split are supplied they must add up to 100; if only the agent
        split is supplied the agency split is derived from it.
        """
        data: dict = {}
        if commission_percent is not None:
            data["commission_percent"] = commission_percent
        if prea_percent_of_commission is not None:
            data["prea_percent_of_commission"] = prea_percent_of_commission
        if vat_percent_on_commission is not None:
            data["vat_percent_on_commission"] = vat_percent_on_commission

        if agency_percent_remaining is not None and agent_percent_remaining is not None:
            agency = require_percent(agency_percent_remaining, "agency_percent_remaining")
            agent = require_percent(agent_percent_remaining, "agent_percent_remaining")
            if abs(agency + agent - HUNDRED) > SPLIT_SUM_EPSILON:
                raise ConfigurationError(
                    f"agency_percent_remaining ({agency}) + agent_percent_remaining ({agent}) "
                    f"must equal 100, got {agency + agent}",
                    "agent_percent_remaining",
                    agent,
                )
            data["agency_percent_remaining"] = agency
        elif agency_percent_remaining is not None:
            data["agency_percent_remaining"] = agency_percent_remaining
        elif agent_percent_remaining is not None:
            agent = require_percent(agent_percent_remaining, "agent_percent_remaining")
            data["agency_percent_remaining"] = HUNDRED - agent

        return cls.model_validate(data)


def rental_default_config(property_type: Optional[str], vat_percent_on_commission: Any = None) -> CommissionConfig:
    """Default split for rental payments when the property carries no percentages."""
    rate = RENTAL_COMMISSION_BY_PROPERTY_TYPE.get(
        (property_type or "residential").lower(),
        RENTAL_COMMISSION_BY_PROPERTY_TYPE["commercial"],
    )
    return CommissionConfig.build(
        commission_percent=rate,
        prea_percent_of_commission=DEFAULT_PREA_PERCENT,
        agency_percent_remaining=RENTAL_AGENCY_PERCENT,
        vat_percent_on_commission=vat_percent_on_commission,
    )


class PaymentInput(BaseModel):
    """One payment as submitted, with its commission config snapshot."""

    model_config = ConfigDict(frozen=True)

    gross_amount: Decimal
    vat_included: bool = False
    vat_rate_percent: Decimal = ZERO
    config: CommissionConfig = Field(default_factory=CommissionConfig)
    mode: PaymentMode = PaymentMode.QUICK

    # Reporting context; not used by the formulas
    payment_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    company_id: Optional[str] = None
    property_id: Optional[str] = None
    agent_id: Optional[str] = None
    currency: str = "USD"

    @field_validator("gross_amount", mode="before")
    @classmethod
    def _check_gross(cls, v):
        amount = to_decimal(v, "gross_amount")
        if amount < ZERO:
            raise ConfigurationError(f"gross_amount cannot be negative, got {amount}", "gross_amount", amount)
        return amount

    @field_validator("vat_rate_percent", mode="before")
    @classmethod
    def _to_decimal(cls, v):
        # clamped later by the VAT extractor, not rejected here
        return to_decimal(v, "vat_rate_percent")


class CommissionAllocation(BaseModel):
    """Finalized split of one payment. Persisted alongside the payment."""

    model_config = ConfigDict(frozen=True)

    gross_amount: Decimal
    vat_included: bool = False
    vat_rate_percent: Decimal = ZERO
    taxable_base: Decimal
    vat_amount: Decimal = ZERO
    total_commission: Decimal
    regulatory_fee: Decimal = ZERO
    agency_share: Decimal = ZERO
    agent_share: Decimal = ZERO
    vat_on_commission: Decimal = ZERO
    owner_amount: Decimal = ZERO
    config: Optional[CommissionConfig] = None
    mode: PaymentMode = PaymentMode.QUICK

    payment_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    company_id: Optional[str] = None
    property_id: Optional[str] = None
    agent_id: Optional[str] = None
    currency: str = "USD"
    is_reversed: bool = False

    @field_validator(
        "gross_amount",
        "vat_rate_percent",
        "taxable_base",
        "vat_amount",
        "total_commission",
        "regulatory_fee",
        "agency_share",
        "agent_share",
        "vat_on_commission",
        "owner_amount",
        mode="before",
    )
    @classmethod
    def _amount(cls, v, info):
        return to_decimal(v, info.field_name)
