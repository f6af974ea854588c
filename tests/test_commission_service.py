"""
Payment submission, config resolution and reversal tests against the
in-memory database.
"""
import asyncio
from datetime import datetime
from decimal import Decimal

import pytest
from bson import Decimal128, ObjectId

from estate_commissions.config.database import Collections
from estate_commissions.config.settings import settings
from estate_commissions.database.db_operations import db_ops
from estate_commissions.engine.errors import ConfigurationError, ReconciliationError
from estate_commissions.models.commission import PaymentMode
from estate_commissions.models.payment import CommissionOverrides, PaymentCreate
from estate_commissions.models.report import GroupBy, Period
from estate_commissions.models.sales_contract import SalesContractCreate
from estate_commissions.services import commission_service, report_service, sales_contract_service
from estate_commissions.services.commission_service import NotFoundError, resolve_config


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def company(fake_db, user):
    fake_db[Collections.COMPANIES].docs.append({"_id": ObjectId(user["company_id"]), "name": "Harare Realty"})


@pytest.fixture
def property_id(fake_db, user, company):
    doc = {
        "_id": ObjectId(),
        "company_id": user["company_id"],
        "property_type": "residential",
        "agent_id": "agent-1",
    }
    fake_db[Collections.PROPERTIES].docs.append(doc)
    return str(doc["_id"])


@pytest.fixture
def yielding_reads(monkeypatch):
    """Make every lookup give up the event loop, like a real Motor round-trip."""
    original = db_ops.get_by_id

    async def get_by_id(collection_name, doc_id):
        doc = await original(collection_name, doc_id)
        await asyncio.sleep(0)
        return doc

    monkeypatch.setattr(db_ops, "get_by_id", get_by_id)


async def _gather(*coros):
    return await asyncio.gather(*coros, return_exceptions=True)


def _account(fake_db, property_id):
    docs = [d for d in fake_db[Collections.PROPERTY_ACCOUNTS].docs if d["property_id"] == property_id]
    assert len(docs) == 1
    return {k: v.to_decimal() for k, v in docs[0].items() if isinstance(v, Decimal128)}


class TestResolveConfig:
    def test_sale_defaults(self):
        config = resolve_config("sale")
        assert config.commission_percent == Decimal("5")
        assert config.prea_percent_of_commission == Decimal("3")
        assert config.agency_percent_remaining == Decimal("50")
        assert config.vat_percent_on_commission == Decimal("0.155")

    def test_rental_defaults_follow_property_type(self):
        config = resolve_config("rental", property_doc={"property_type": "commercial"})
        assert config.commission_percent == Decimal("10")
        assert config.agent_percent_remaining == Decimal("60")

    def test_first_source_wins_per_field(self):
        config = resolve_config(
            "sale",
            overrides=CommissionOverrides(prea_percent_of_commission=Decimal("2")),
            company={"commission_config": {"commission_percent": "6", "vat_percent_on_commission": "0.1"}},
            property_doc={"commission": Decimal128("8"), "commission_prea_percent": "4"},
            contract={"commission_percent": Decimal128("7")},
        )
        assert config.commission_percent == Decimal("7")
        assert config.prea_percent_of_commission == Decimal("2")
        assert config.vat_percent_on_commission == Decimal("0.1")

    def test_split_taken_from_one_source(self):
        config = resolve_config(
            "sale",
            overrides=CommissionOverrides(agent_percent_remaining=Decimal("70")),
            property_doc={"commission_agency_percent_remaining": "40"},
        )
        assert config.agency_percent_remaining == Decimal("30")

    def test_conflicting_split_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve_config(
                "sale",
                overrides=CommissionOverrides(
                    agency_percent_remaining=Decimal("50"), agent_percent_remaining=Decimal("40"),
                ),
            )

    def test_null_company_vat_uses_configured_default(self, monkeypatch):
        monkeypatch.setattr(settings, "DEFAULT_VAT_ON_COMMISSION", "0.1")
        config = resolve_config("sale", company={"commission_config": {"vat_percent_on_commission": None}})
        assert config.vat_percent_on_commission == Decimal("0.1")

    def test_explicit_zero_company_vat_is_kept(self, monkeypatch):
        monkeypatch.setattr(settings, "DEFAULT_VAT_ON_COMMISSION", "0.1")
        config = resolve_config("sale", company={"commission_config": {"vat_percent_on_commission": 0}})
        assert config.vat_percent_on_commission == Decimal("0")


class TestSubmitPayment:
    def test_sale_payment_is_stored_with_allocation(self, fake_db, user, property_id):
        request = PaymentCreate(
            payment_type="sale",
            gross_amount=Decimal("1000"),
            vat_included=True,
            vat_rate_percent=Decimal("15.5"),
            property_id=property_id,
            payment_date=datetime(2026, 3, 5, 10),
        )
        result = run(commission_service.submit_payment(request, user))

        assert result["allocation"]["total_commission"] == "43.29"
        assert result["allocation"]["owner_amount"] == "815.80"
        assert result["allocation"]["config"]["commission_percent"] == "5"
        assert result["agent_id"] == "agent-1"
        assert result["is_reversed"] is False

        stored = fake_db[Collections.PAYMENTS].docs[0]
        assert isinstance(stored["allocation"]["agent_share"], Decimal128)

        account = _account(fake_db, property_id)
        assert account["total_collected"] == Decimal("1000")
        assert account["total_commission"] == Decimal("43.29")
        assert account["owner_balance"] == Decimal("815.80")

    def test_rental_payment_uses_property_type_rate(self, fake_db, user, property_id):
        request = PaymentCreate(gross_amount=Decimal("500"), property_id=property_id)
        result = run(commission_service.submit_payment(request, user))

        allocation = result["allocation"]
        assert allocation["total_commission"] == "75.00"
        assert allocation["regulatory_fee"] == "2.25"
        assert allocation["agency_share"] == "29.10"
        assert allocation["agent_share"] == "43.65"
        assert allocation["owner_amount"] == "413.37"

    def test_running_totals_accumulate(self, fake_db, user, property_id):
        for _ in range(3):
            run(commission_service.submit_payment(
                PaymentCreate(gross_amount=Decimal("500"), property_id=property_id), user,
            ))
        assert _account(fake_db, property_id)["total_collected"] == Decimal("1500")

    def test_idempotent_retry_returns_first_payment(self, fake_db, user, property_id):
        request = PaymentCreate(gross_amount=Decimal("1000"), property_id=property_id, idempotency_key="rcpt-42")
        first = run(commission_service.submit_payment(request, user))
        second = run(commission_service.submit_payment(request, user))

        assert first["_id"] == second["_id"]
        assert len(fake_db[Collections.PAYMENTS].docs) == 1
        assert _account(fake_db, property_id)["total_collected"] == Decimal("1000")

    def test_invalid_percent_writes_nothing(self, fake_db, user, property_id):
        request = PaymentCreate(
            gross_amount=Decimal("1000"),
            property_id=property_id,
            commission=CommissionOverrides(commission_percent=Decimal("150")),
        )
        with pytest.raises(ConfigurationError):
            run(commission_service.submit_payment(request, user))
        assert fake_db[Collections.PAYMENTS].docs == []
        assert fake_db[Collections.PROPERTY_ACCOUNTS].docs == []

    def test_unreconciled_allocation_writes_nothing(self, fake_db, user, property_id):
        request = PaymentCreate(
            gross_amount=Decimal("100"),
            property_id=property_id,
            commission=CommissionOverrides(
                commission_percent=Decimal("90"), vat_percent_on_commission=Decimal("1"),
            ),
        )
        with pytest.raises(ReconciliationError):
            run(commission_service.submit_payment(request, user))
        assert fake_db[Collections.PAYMENTS].docs == []

    def test_unknown_property(self, fake_db, user, company):
        request = PaymentCreate(gross_amount=Decimal("100"), property_id=str(ObjectId()))
        with pytest.raises(NotFoundError):
            run(commission_service.submit_payment(request, user))

    def test_property_of_another_company(self, fake_db, user, company):
        other = ObjectId()
        fake_db[Collections.PROPERTIES].docs.append({"_id": other, "company_id": "someone-else"})
        with pytest.raises(NotFoundError):
            run(commission_service.submit_payment(
                PaymentCreate(gross_amount=Decimal("100"), property_id=str(other)), user,
            ))


class TestSalesContractPayments:
    @pytest.fixture
    def contract_id(self, fake_db, user, property_id):
        created = run(sales_contract_service.create_sales_contract(
            SalesContractCreate(
                property_id=property_id,
                buyer_name="T. Moyo",
                total_sale_price=Decimal("1500"),
                commission_percent=Decimal("4"),
            ),
            user,
        ))
        return created["_id"]

    def _installment(self, contract_id, amount, **kwargs):
        return PaymentCreate(
            payment_type="sale",
            gross_amount=Decimal(amount),
            mode=PaymentMode.INSTALLMENT,
            sales_contract_id=contract_id,
            **kwargs,
        )

    def test_contract_percentages_apply(self, fake_db, user, contract_id, property_id):
        result = run(commission_service.submit_payment(self._installment(contract_id, "1000"), user))
        assert result["allocation"]["total_commission"] == "40.00"
        assert result["property_id"] == property_id

    def test_form_override_beats_contract(self, fake_db, user, contract_id):
        request = self._installment(
            contract_id, "1000", commission=CommissionOverrides(commission_percent=Decimal("6")),
        )
        result = run(commission_service.submit_payment(request, user))
        assert result["allocation"]["total_commission"] == "60.00"

    def test_installment_over_outstanding_rejected(self, fake_db, user, contract_id):
        run(commission_service.submit_payment(self._installment(contract_id, "1000"), user))
        with pytest.raises(ConfigurationError):
            run(commission_service.submit_payment(self._installment(contract_id, "600"), user))
        assert len(fake_db[Collections.PAYMENTS].docs) == 1

    def test_progress(self, fake_db, user, contract_id):
        run(commission_service.submit_payment(self._installment(contract_id, "1000"), user))
        progress = run(sales_contract_service.get_contract_progress(contract_id, user))
        assert progress.total_paid == Decimal("1000.00")
        assert progress.outstanding == Decimal("500.00")
        assert progress.installments == 1

    def test_stored_contract_split_is_consistent(self, fake_db, contract_id):
        contract = fake_db[Collections.SALES_CONTRACTS].docs[0]
        assert contract["agency_percent_remaining"].to_decimal() == Decimal("50")
        assert contract["agent_percent_remaining"].to_decimal() == Decimal("50")

    def _paid(self, fake_db):
        return fake_db[Collections.SALES_CONTRACTS].docs[0]["paid_amount"].to_decimal()

    def test_paid_amount_tracks_installments(self, fake_db, user, contract_id):
        run(commission_service.submit_payment(self._installment(contract_id, "1000"), user))
        assert self._paid(fake_db) == Decimal("1000.00")

    def test_rejected_installment_releases_its_claim(self, fake_db, user, contract_id):
        run(commission_service.submit_payment(self._installment(contract_id, "1000"), user))
        with pytest.raises(ConfigurationError):
            run(commission_service.submit_payment(self._installment(contract_id, "600"), user))
        assert self._paid(fake_db) == Decimal("1000.00")

    def test_concurrent_installments_cannot_overpay(self, fake_db, user, contract_id, yielding_reads):
        results = run(_gather(
            commission_service.submit_payment(self._installment(contract_id, "800"), user),
            commission_service.submit_payment(self._installment(contract_id, "800"), user),
        ))

        assert sum(isinstance(r, dict) for r in results) == 1
        assert sum(isinstance(r, ConfigurationError) for r in results) == 1
        assert len(fake_db[Collections.PAYMENTS].docs) == 1
        assert self._paid(fake_db) == Decimal("800.00")

    def test_reversed_installment_frees_balance(self, fake_db, user, contract_id):
        first = run(commission_service.submit_payment(self._installment(contract_id, "1000"), user))
        run(commission_service.reverse_payment(first["_id"], user))
        assert self._paid(fake_db) == Decimal("0")

        result = run(commission_service.submit_payment(self._installment(contract_id, "1500"), user))
        assert result["allocation"]["gross_amount"] == "1500"

    def test_contract_without_paid_amount_counts_stored_payments(self, fake_db, user, company):
        contract_id = ObjectId()
        fake_db[Collections.SALES_CONTRACTS].docs.append({
            "_id": contract_id,
            "company_id": user["company_id"],
            "buyer_name": "L. Ncube",
            "total_sale_price": Decimal128("1500"),
        })
        fake_db[Collections.PAYMENTS].docs.append({
            "_id": ObjectId(),
            "company_id": user["company_id"],
            "sales_contract_id": str(contract_id),
            "is_reversed": False,
            "allocation": {"gross_amount": Decimal128("1000")},
        })

        with pytest.raises(ConfigurationError):
            run(commission_service.submit_payment(self._installment(str(contract_id), "600"), user))
        assert self._paid(fake_db) == Decimal("1000.00")


class TestReversal:
    def test_reverse_takes_payment_out_of_totals(self, fake_db, user, property_id):
        created = run(commission_service.submit_payment(
            PaymentCreate(gross_amount=Decimal("1000"), property_id=property_id), user,
        ))
        reversed_doc = run(commission_service.reverse_payment(created["_id"], user, reason="bounced"))

        assert reversed_doc["is_reversed"] is True
        assert reversed_doc["status"] == "reversed"
        assert reversed_doc["allocation"] == created["allocation"]
        account = _account(fake_db, property_id)
        assert account["total_collected"] == Decimal("0")
        assert account["total_commission"] == Decimal("0")

    def test_cannot_reverse_twice(self, fake_db, user, property_id):
        created = run(commission_service.submit_payment(
            PaymentCreate(gross_amount=Decimal("1000"), property_id=property_id), user,
        ))
        run(commission_service.reverse_payment(created["_id"], user))
        with pytest.raises(ValueError):
            run(commission_service.reverse_payment(created["_id"], user))

    def test_concurrent_reversals_apply_once(self, fake_db, user, property_id, yielding_reads):
        created = run(commission_service.submit_payment(
            PaymentCreate(gross_amount=Decimal("1000"), property_id=property_id), user,
        ))
        results = run(_gather(
            commission_service.reverse_payment(created["_id"], user),
            commission_service.reverse_payment(created["_id"], user),
        ))

        assert sum(isinstance(r, dict) for r in results) == 1
        assert sum(isinstance(r, ValueError) for r in results) == 1
        assert _account(fake_db, property_id)["total_collected"] == Decimal("0")


class TestRunningTotals:
    def test_failed_increment_is_logged_and_rebuildable(self, fake_db, user, property_id, monkeypatch, caplog):
        async def unavailable(*args, **kwargs):
            raise ConnectionError("primary stepped down")

        with monkeypatch.context() as patch:
            patch.setattr(db_ops, "increment", unavailable)
            with pytest.raises(ConnectionError):
                run(commission_service.submit_payment(
                    PaymentCreate(gross_amount=Decimal("1000"), property_id=property_id), user,
                ))

        assert len(fake_db[Collections.PAYMENTS].docs) == 1
        assert fake_db[Collections.PROPERTY_ACCOUNTS].docs == []
        assert "rebuild_running_totals" in caplog.text

        run(commission_service.rebuild_running_totals(user["company_id"], property_id))
        account = _account(fake_db, property_id)
        assert account["total_collected"] == Decimal("1000")
        assert account["total_commission"] == Decimal("150.00")
        assert account["owner_balance"] == Decimal("826.75")

    def test_rebuild_skips_reversed_payments(self, fake_db, user, property_id):
        for amount in ("1000", "500"):
            created = run(commission_service.submit_payment(
                PaymentCreate(gross_amount=Decimal(amount), property_id=property_id), user,
            ))
        run(commission_service.reverse_payment(created["_id"], user))

        run(commission_service.rebuild_running_totals(user["company_id"], property_id))
        assert _account(fake_db, property_id)["total_collected"] == Decimal("1000")


class TestReports:
    def test_agent_report_from_stored_payments(self, fake_db, user, property_id):
        for day, amount in ((5, "1000"), (12, "500")):
            run(commission_service.submit_payment(
                PaymentCreate(
                    payment_type="sale",
                    gross_amount=Decimal(amount),
                    property_id=property_id,
                    payment_date=datetime(2026, 3, day, 10),
                ),
                user,
            ))
        february = run(commission_service.submit_payment(
            PaymentCreate(
                payment_type="sale",
                gross_amount=Decimal("1000"),
                property_id=property_id,
                payment_date=datetime(2026, 2, 20, 10),
            ),
            user,
        ))
        run(commission_service.reverse_payment(february["_id"], user))

        report = run(report_service.build_report(user["company_id"], GroupBy.AGENT, Period(year=2026, month=3)))
        group = report.group("agent-1")
        # 1000 -> 24.25 to the agent, 500 -> 12.13
        assert group.monthly == Decimal("36.38")
        assert group.total == Decimal("36.38")
        assert [p.date.day for p in group.payments] == [5, 12]
