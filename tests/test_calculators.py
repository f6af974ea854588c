"""
Commission calculator tests
"""
from decimal import Decimal

import pytest

from estate_commissions.engine.calculators import (
    compute_commission,
    compute_owner_amount,
    compute_vat_on_commission,
    split_commission,
)
from estate_commissions.engine.errors import ConfigurationError


class TestComputeCommission:
    def test_percentage_of_base(self):
        assert compute_commission(Decimal("865.80"), Decimal("5")) == Decimal("43.29")

    def test_rounds_half_up(self):
        # 10.10 * 2.5% = 0.2525
        assert compute_commission(Decimal("10.10"), Decimal("2.5")) == Decimal("0.25")
        # 10.30 * 2.5% = 0.2575
        assert compute_commission(Decimal("10.30"), Decimal("2.5")) == Decimal("0.26")

    @pytest.mark.parametrize("percent", ["150", "-1", "100.01"])
    def test_out_of_range_percent_rejected(self, percent):
        with pytest.raises(ConfigurationError) as exc:
            compute_commission(Decimal("100"), Decimal(percent))
        assert exc.value.field == "commission_percent"

    def test_negative_base_rejected(self):
        with pytest.raises(ConfigurationError):
            compute_commission(Decimal("-1"), Decimal("5"))

    def test_bounds_are_inclusive(self):
        assert compute_commission(Decimal("80"), 0) == Decimal("0.00")
        assert compute_commission(Decimal("80"), 100) == Decimal("80.00")


class TestSplitCommission:
    def test_waterfall(self):
        assert split_commission(Decimal("43.29"), Decimal("3"), Decimal("50")) == (
            Decimal("1.30"), Decimal("21.00"), Decimal("21.00"),
        )

    def test_agent_percent_is_derived_from_agency(self):
        fee, agency, agent = split_commission(Decimal("100"), 0, Decimal("40"), Decimal("70"))
        assert (fee, agency, agent) == (Decimal("0.00"), Decimal("40.00"), Decimal("60.00"))

    def test_full_regulatory_fee_leaves_nothing(self):
        assert split_commission(Decimal("12.34"), 100, 50) == (Decimal("12.34"), Decimal("0.00"), Decimal("0.00"))

    def test_agency_takes_everything(self):
        assert split_commission(Decimal("50"), 0, 100) == (Decimal("0.00"), Decimal("50.00"), Decimal("0.00"))

    def test_zero_commission(self):
        assert split_commission(0, 3, 50) == (Decimal("0.00"), Decimal("0.00"), Decimal("0.00"))

    def test_invalid_percent_rejected(self):
        with pytest.raises(ConfigurationError) as exc:
            split_commission(Decimal("10"), Decimal("101"), 50)
        assert exc.value.field == "prea_percent_of_commission"
        with pytest.raises(ConfigurationError):
            split_commission(Decimal("10"), 3, Decimal("-0.5"))


class TestVatOnCommission:
    def test_fractional_rate(self):
        assert compute_vat_on_commission(Decimal("43.29"), Decimal("0.155")) == Decimal("6.71")

    def test_rate_is_clamped(self):
        assert compute_vat_on_commission(Decimal("43.29"), Decimal("2")) == Decimal("43.29")
        assert compute_vat_on_commission(Decimal("43.29"), Decimal("-1")) == Decimal("0.00")


class TestOwnerAmount:
    def test_net_of_vat_commission_and_commission_vat(self):
        owner = compute_owner_amount(Decimal("1000"), Decimal("134.20"), Decimal("43.29"), Decimal("0.155"))
        assert owner == Decimal("815.80")

    def test_floored_at_zero(self):
        assert compute_owner_amount(Decimal("100"), 0, Decimal("90"), 1) == Decimal("0.00")

    def test_vat_larger_than_gross_floors(self):
        assert compute_owner_amount(Decimal("10"), Decimal("20"), 0, 0) == Decimal("0.00")

    def test_negative_gross_rejected(self):
        with pytest.raises(ConfigurationError):
            compute_owner_amount(Decimal("-5"), 0, 0, 0)

    def test_more_commission_never_means_more_for_owner(self):
        gross = Decimal("1000")
        commissions = [compute_commission(gross, p) for p in range(0, 41)]
        owners = [compute_owner_amount(gross, 0, c, Decimal("0.155")) for c in commissions]

        assert all(b > a for a, b in zip(commissions, commissions[1:]))
        assert all(b < a for a, b in zip(owners, owners[1:]))
