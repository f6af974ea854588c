"""
Commission Service – resolves the commission config snapshot for a payment,
runs the engine, and persists the payment together with its allocation.

Nothing is written when the engine rejects a payment; the error is raised
to the route so the user sees which invariant failed.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from bson import Decimal128
from pymongo.errors import DuplicateKeyError

from estate_commissions.config.database import Collections, db_config
from estate_commissions.config.settings import settings
from estate_commissions.database.db_operations import db_ops
from estate_commissions.engine.errors import CommissionEngineError, ConfigurationError
from estate_commissions.engine.installments import ensure_within_balance, installment_progress
from estate_commissions.engine.money import ZERO, quantize_money, to_decimal
from estate_commissions.engine.pipeline import calculate
from estate_commissions.models.commission import (
    CommissionAllocation,
    CommissionConfig,
    PaymentInput,
    PaymentMode,
    rental_default_config,
)
from estate_commissions.models.payment import CommissionOverrides, PaymentCreate
from estate_commissions.utils.helpers import (
    allocation_from_doc,
    allocation_to_doc,
    serialize_doc,
    serialize_docs,
)

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """A referenced property, contract or payment does not exist for this company."""


# ─── Config resolution ────────────────────────────────────────────────────────

def _contract_fields(contract: Optional[Dict]) -> Dict[str, Any]:
    if not contract:
        return {}
    return {
        "commission_percent": contract.get("commission_percent"),
        "prea_percent_of_commission": contract.get("prea_percent_of_commission"),
        "agency_percent_remaining": contract.get("agency_percent_remaining"),
        "agent_percent_remaining": contract.get("agent_percent_remaining"),
    }


def _property_fields(property_doc: Optional[Dict]) -> Dict[str, Any]:
    if not property_doc:
        return {}
    return {
        "commission_percent": property_doc.get("commission"),
        "prea_percent_of_commission": property_doc.get("commission_prea_percent"),
        "agency_percent_remaining": property_doc.get("commission_agency_percent_remaining"),
        "agent_percent_remaining": property_doc.get("commission_agent_percent_remaining"),
    }


def _fallback_config(payment_type: str, property_doc: Optional[Dict]) -> CommissionConfig:
    if payment_type == "rental":
        return rental_default_config((property_doc or {}).get("property_type"))
    return CommissionConfig.build(
        commission_percent=settings.DEFAULT_COMMISSION_PERCENT,
        prea_percent_of_commission=settings.DEFAULT_PREA_PERCENT,
        agency_percent_remaining=settings.DEFAULT_AGENCY_PERCENT,
    )


def resolve_config(
    payment_type: str,
    overrides: Optional[CommissionOverrides] = None,
    company: Optional[Dict] = None,
    property_doc: Optional[Dict] = None,
    contract: Optional[Dict] = None,
) -> CommissionConfig:
    """
    Build the snapshot for one payment. Each field comes from the first source
    that sets it: form overrides → sales contract → property → company config
    → defaults. The agency/agent pair is always taken from a single source.
    """
    override_fields = (overrides or CommissionOverrides()).model_dump()
    company_fields = dict((company or {}).get("commission_config") or {})
    sources = [override_fields, _contract_fields(contract), _property_fields(property_doc), company_fields]
    fallback = _fallback_config(payment_type, property_doc)

    def pick(field: str) -> Any:
        for source in sources:
            if source.get(field) is not None:
                return source[field]
        return getattr(fallback, field)

    split_source = next(
        (
            s for s in sources
            if s.get("agency_percent_remaining") is not None or s.get("agent_percent_remaining") is not None
        ),
        {"agency_percent_remaining": fallback.agency_percent_remaining},
    )

    # an explicit 0 is a valid rate; only missing or null values fall through
    vat_on_commission = override_fields.get("vat_percent_on_commission")
    if vat_on_commission is None:
        vat_on_commission = company_fields.get("vat_percent_on_commission")
    if vat_on_commission is None:
        vat_on_commission = settings.DEFAULT_VAT_ON_COMMISSION

    return CommissionConfig.build(
        commission_percent=pick("commission_percent"),
        prea_percent_of_commission=pick("prea_percent_of_commission"),
        agency_percent_remaining=split_source.get("agency_percent_remaining"),
        agent_percent_remaining=split_source.get("agent_percent_remaining"),
        vat_percent_on_commission=vat_on_commission,
    )


# ─── Loaders ──────────────────────────────────────────────────────────────────

async def _get_company(company_id: str) -> Optional[Dict]:
    return await db_ops.get_by_id(Collections.COMPANIES, company_id)


async def _get_scoped(collection: str, doc_id: Optional[str], company_id: str, label: str) -> Optional[Dict]:
    if not doc_id:
        return None
    doc = await db_ops.get_by_id(collection, doc_id)
    if not doc or doc.get("company_id") != company_id:
        raise NotFoundError(f"{label} {doc_id} not found")
    return doc


async def contract_payment_amounts(company_id: str, contract_id: str) -> List[Any]:
    coll = db_config.get_collection(Collections.PAYMENTS)
    amounts = []
    async for doc in coll.find({
        "company_id": company_id,
        "sales_contract_id": contract_id,
        "is_reversed": {"$ne": True},
    }):
        amounts.append((doc.get("allocation") or {}).get("gross_amount"))
    return amounts


# ─── Running totals ───────────────────────────────────────────────────────────

def _amount(value: Decimal) -> Decimal128:
    return Decimal128(value)


async def _apply_running_totals(allocation: CommissionAllocation, sign: int = 1) -> None:
    """Fold one allocation into the property's running totals with a single $inc."""
    if not allocation.property_id:
        return
    await db_ops.increment(
        Collections.PROPERTY_ACCOUNTS,
        {"company_id": allocation.company_id, "property_id": allocation.property_id},
        {
            "total_collected": _amount(sign * allocation.gross_amount),
            "total_commission": _amount(sign * allocation.total_commission),
            "owner_balance": _amount(sign * allocation.owner_amount),
        },
        on_insert={"currency": allocation.currency, "created_at": datetime.utcnow()},
    )


async def rebuild_running_totals(company_id: str, property_id: str) -> Dict:
    """
    Recompute a property's running totals from its stored, non-reversed
    allocations. Repairs an account whose $inc never landed after the
    payment itself was stored.
    """
    totals = {"total_collected": ZERO, "total_commission": ZERO, "owner_balance": ZERO}
    coll = db_config.get_collection(Collections.PAYMENTS)
    async for doc in coll.find({
        "company_id": company_id,
        "property_id": property_id,
        "is_reversed": {"$ne": True},
    }):
        if not doc.get("allocation"):
            continue
        allocation = allocation_from_doc(doc)
        totals["total_collected"] += allocation.gross_amount
        totals["total_commission"] += allocation.total_commission
        totals["owner_balance"] += allocation.owner_amount

    account = await db_ops.update_where(
        Collections.PROPERTY_ACCOUNTS,
        {"company_id": company_id, "property_id": property_id},
        {field: _amount(value) for field, value in totals.items()},
        upsert=True,
    )
    logger.info("Running totals for property %s rebuilt: %s", property_id, totals)
    return serialize_doc(account)


async def ensure_indexes() -> None:
    """Unique idempotency key per company; retried submissions hit this index."""
    coll = db_config.get_collection(Collections.PAYMENTS)
    await coll.create_index(
        [("company_id", 1), ("idempotency_key", 1)],
        unique=True,
        partialFilterExpression={"idempotency_key": {"$type": "string"}},
    )
    await coll.create_index([("company_id", 1), ("payment_date", -1)])


# ─── Installment reservations ─────────────────────────────────────────────────

async def _seed_paid_amount(contract: Dict) -> None:
    """Contracts stored without paid_amount start from their recorded payments."""
    previous = await contract_payment_amounts(contract["company_id"], str(contract["_id"]))
    paid = installment_progress(contract.get("total_sale_price"), previous).total_paid
    await db_ops.update_where(
        Collections.SALES_CONTRACTS,
        {"_id": contract["_id"], "paid_amount": None},
        {"paid_amount": _amount(paid)},
    )


async def _reserve_installment(contract: Dict, amount: Decimal) -> Decimal:
    """
    Claim `amount` of the contract's outstanding balance with one $inc on
    paid_amount. Concurrent installments each see the others' claims, so
    together they never exceed the sale price. Returns the reserved amount.
    """
    if contract.get("paid_amount") is None:
        await _seed_paid_amount(contract)

    updated = await db_ops.increment(
        Collections.SALES_CONTRACTS,
        {"_id": contract["_id"]},
        {"paid_amount": _amount(amount)},
        upsert=False,
    )
    if updated is None:
        raise NotFoundError(f"Sales contract {contract['_id']} not found")

    paid_before = to_decimal(updated.get("paid_amount"), "paid_amount") - amount
    try:
        ensure_within_balance(updated.get("total_sale_price"), [paid_before], amount)
    except ConfigurationError:
        await _release_installment(contract, amount)
        raise
    return amount


async def _release_installment(contract: Optional[Dict], amount: Optional[Decimal]) -> None:
    if contract is None or amount is None:
        return
    await db_ops.increment(
        Collections.SALES_CONTRACTS,
        {"_id": contract["_id"]},
        {"paid_amount": _amount(-amount)},
        upsert=False,
    )


# ─── Submission ───────────────────────────────────────────────────────────────

async def submit_payment(request: PaymentCreate, current_user: Dict) -> Dict:
    """
    Calculate and persist one payment.
    Raises ConfigurationError / ReconciliationError without writing anything.
    """
    company_id = current_user["company_id"]

    if request.idempotency_key:
        existing = await db_ops.get_one(
            Collections.PAYMENTS,
            {"company_id": company_id, "idempotency_key": request.idempotency_key},
        )
        if existing:
            logger.info("Payment with idempotency key %s already recorded", request.idempotency_key)
            return serialize_doc(existing)

    company = await _get_company(company_id)
    contract = await _get_scoped(Collections.SALES_CONTRACTS, request.sales_contract_id, company_id, "Sales contract")
    property_id = request.property_id or (contract or {}).get("property_id")
    property_doc = await _get_scoped(Collections.PROPERTIES, property_id, company_id, "Property")

    try:
        config = resolve_config(request.payment_type, request.commission, company, property_doc, contract)
        payment_input = PaymentInput(
            gross_amount=request.gross_amount,
            vat_included=request.vat_included,
            vat_rate_percent=request.vat_rate_percent,
            config=config,
            mode=request.mode,
            payment_date=request.payment_date or datetime.utcnow(),
            company_id=company_id,
            property_id=property_id,
            agent_id=request.agent_id or (property_doc or {}).get("agent_id"),
            currency=request.currency or (contract or {}).get("currency") or settings.DEFAULT_CURRENCY,
        )
        allocation = calculate(payment_input)

        reserved = None
        if contract and request.mode == PaymentMode.INSTALLMENT:
            reserved = await _reserve_installment(contract, quantize_money(allocation.gross_amount, "gross_amount"))
    except CommissionEngineError as e:
        logger.warning("Payment rejected for company %s: %s", company_id, e)
        raise

    doc = {
        "company_id": company_id,
        "payment_type": request.payment_type,
        "property_id": allocation.property_id,
        "sales_contract_id": request.sales_contract_id,
        "agent_id": allocation.agent_id,
        "payment_date": allocation.payment_date,
        "currency": allocation.currency,
        "reference": request.reference,
        "allocation": allocation_to_doc(allocation),
        "status": "completed",
        "is_reversed": False,
        "processed_by": current_user.get("sub"),
    }
    if request.idempotency_key:
        doc["idempotency_key"] = request.idempotency_key

    try:
        created = await db_ops.create(Collections.PAYMENTS, doc)
    except DuplicateKeyError:
        # lost the race against a concurrent retry with the same key
        await _release_installment(contract, reserved)
        existing = await db_ops.get_one(
            Collections.PAYMENTS,
            {"company_id": company_id, "idempotency_key": request.idempotency_key},
        )
        return serialize_doc(existing)
    except Exception:
        await _release_installment(contract, reserved)
        raise

    try:
        await _apply_running_totals(allocation)
    except Exception:
        logger.exception(
            "Payment %s stored but running totals for property %s were not updated; "
            "repair with rebuild_running_totals",
            created["_id"], allocation.property_id,
        )
        raise

    logger.info(
        "Payment %s recorded: gross=%s commission=%s owner=%s",
        created["_id"], allocation.gross_amount, allocation.total_commission, allocation.owner_amount,
    )
    return serialize_doc(created)


async def reverse_payment(payment_id: str, current_user: Dict, reason: Optional[str] = None) -> Dict:
    """
    Mark a payment reversed and take it back out of the running totals.
    The stored allocation itself is left untouched.
    """
    company_id = current_user["company_id"]
    payment = await _get_scoped(Collections.PAYMENTS, payment_id, company_id, "Payment")

    # the is_reversed filter makes the flag flip at most once under concurrent requests
    updated = await db_ops.update_where(
        Collections.PAYMENTS,
        {"_id": payment["_id"], "company_id": company_id, "is_reversed": {"$ne": True}},
        {
            "is_reversed": True,
            "status": "reversed",
            "reversed_at": datetime.utcnow(),
            "reversed_by": current_user.get("sub"),
            "reversal_reason": reason,
        },
    )
    if updated is None:
        raise ValueError(f"Payment {payment_id} is already reversed")

    allocation = allocation_from_doc(updated)
    await _apply_running_totals(allocation, sign=-1)
    if updated.get("sales_contract_id") and allocation.mode == PaymentMode.INSTALLMENT:
        contract = await db_ops.get_by_id(Collections.SALES_CONTRACTS, updated["sales_contract_id"])
        if contract and contract.get("paid_amount") is not None:
            await _release_installment(contract, quantize_money(allocation.gross_amount, "gross_amount"))

    logger.info("Payment %s reversed by %s", payment_id, current_user.get("sub"))
    return serialize_doc(updated)


async def get_payment(payment_id: str, current_user: Dict) -> Dict:
    payment = await _get_scoped(Collections.PAYMENTS, payment_id, current_user["company_id"], "Payment")
    return serialize_doc(payment)


async def list_payments(
    current_user: Dict,
    property_id: Optional[str] = None,
    agent_id: Optional[str] = None,
    sales_contract_id: Optional[str] = None,
    skip: int = 0,
    limit: int = settings.DEFAULT_PAGE_SIZE,
) -> List[Dict]:
    query: Dict[str, Any] = {"company_id": current_user["company_id"]}
    if property_id:       query["property_id"] = property_id
    if agent_id:          query["agent_id"] = agent_id
    if sales_contract_id: query["sales_contract_id"] = sales_contract_id

    docs = await db_ops.get_all(
        Collections.PAYMENTS, query, skip=skip, limit=min(limit, settings.MAX_PAGE_SIZE),
        sort=[("payment_date", -1)],
    )
    return serialize_docs(docs)
