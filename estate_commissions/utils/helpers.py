"""
Helper utility functions
"""
from bson import Decimal128, ObjectId
from typing import Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal
import pytz

from estate_commissions.config.settings import settings
from estate_commissions.models.commission import CommissionAllocation

LOCAL_TZ = pytz.timezone(settings.TIMEZONE)

# Allocation fields stored as Decimal128 so amounts round-trip without float drift
AMOUNT_FIELDS = (
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
)
CONFIG_FIELDS = (
    "commission_percent",
    "prea_percent_of_commission",
    "agency_percent_remaining",
    "vat_percent_on_commission",
)


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes from MongoDB are UTC; convert to the reporting timezone."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(LOCAL_TZ)


def _serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return to_local(value).isoformat()
    if isinstance(value, Decimal128):
        return str(value.to_decimal())
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(item) for item in value]
    return value


def serialize_doc(doc: Optional[Dict]) -> Optional[Dict]:
    """Convert MongoDB document to JSON-serializable format"""
    if doc is None:
        return None
    return {key: _serialize_value(value) for key, value in doc.items()}


def serialize_docs(docs: List[Dict]) -> List[Dict]:
    """Convert list of MongoDB documents to JSON-serializable format"""
    return [serialize_doc(doc) for doc in docs]


def allocation_to_doc(allocation: CommissionAllocation) -> Dict:
    """Allocation → Mongo sub-document with Decimal128 amounts."""
    doc = allocation.model_dump(
        include=set(AMOUNT_FIELDS) | {"vat_included", "mode"},
        mode="python",
    )
    for field in AMOUNT_FIELDS:
        doc[field] = Decimal128(doc[field])
    doc["mode"] = allocation.mode.value
    if allocation.config is not None:
        doc["config"] = {
            field: Decimal128(getattr(allocation.config, field)) for field in CONFIG_FIELDS
        }
    return doc


def allocation_from_doc(payment: Dict) -> CommissionAllocation:
    """Rebuild a CommissionAllocation from a stored payment document."""
    stored = dict(payment.get("allocation") or {})
    config = stored.pop("config", None)
    if config:
        config = {
            field: value.to_decimal() if isinstance(value, Decimal128) else value
            for field, value in config.items()
            if field in CONFIG_FIELDS
        }
    return CommissionAllocation(
        **stored,
        config=config,
        payment_id=str(payment["_id"]) if payment.get("_id") is not None else None,
        payment_date=payment.get("payment_date"),
        company_id=payment.get("company_id"),
        property_id=payment.get("property_id"),
        agent_id=payment.get("agent_id"),
        currency=payment.get("currency", settings.DEFAULT_CURRENCY),
        is_reversed=bool(payment.get("is_reversed", False)),
    )
