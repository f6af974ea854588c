"""
Sales contracts – total sale price plus the commission percentages agreed for the sale.
"""
from typing import Dict, List, Optional

from bson import Decimal128

from estate_commissions.config.database import Collections
from estate_commissions.config.settings import settings
from estate_commissions.database.db_operations import db_ops
from estate_commissions.engine.installments import InstallmentProgress, installment_progress
from estate_commissions.models.commission import CommissionConfig
from estate_commissions.models.sales_contract import SalesContractCreate
from estate_commissions.services.commission_service import NotFoundError, contract_payment_amounts
from estate_commissions.utils.helpers import serialize_doc, serialize_docs


async def create_sales_contract(payload: SalesContractCreate, current_user: Dict) -> Dict:
    """Store a contract with a validated commission config (defaults 5% / 3% / 50-50)."""
    config = CommissionConfig.build(
        commission_percent=payload.commission_percent,
        prea_percent_of_commission=payload.prea_percent_of_commission,
        agency_percent_remaining=payload.agency_percent_remaining,
        agent_percent_remaining=payload.agent_percent_remaining,
    )
    doc = {
        "company_id": current_user["company_id"],
        "property_id": payload.property_id,
        "manual_property_address": payload.manual_property_address,
        "buyer_name": payload.buyer_name,
        "seller_name": payload.seller_name,
        "currency": payload.currency or settings.DEFAULT_CURRENCY,
        "total_sale_price": Decimal128(payload.total_sale_price),
        "paid_amount": Decimal128("0"),
        "commission_percent": Decimal128(config.commission_percent),
        "prea_percent_of_commission": Decimal128(config.prea_percent_of_commission),
        "agency_percent_remaining": Decimal128(config.agency_percent_remaining),
        "agent_percent_remaining": Decimal128(config.agent_percent_remaining),
        "reference": payload.reference,
        "status": "active",
        "created_by": current_user.get("sub"),
    }
    created = await db_ops.create(Collections.SALES_CONTRACTS, doc)
    return serialize_doc(created)


async def _get_contract(contract_id: str, company_id: str) -> Dict:
    doc = await db_ops.get_by_id(Collections.SALES_CONTRACTS, contract_id)
    if not doc or doc.get("company_id") != company_id:
        raise NotFoundError(f"Sales contract {contract_id} not found")
    return doc


async def get_sales_contract(contract_id: str, current_user: Dict) -> Dict:
    return serialize_doc(await _get_contract(contract_id, current_user["company_id"]))


async def list_sales_contracts(
    current_user: Dict,
    reference: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Dict]:
    query: Dict = {"company_id": current_user["company_id"]}
    if reference: query["reference"] = reference
    if status:    query["status"] = status
    docs = await db_ops.get_all(Collections.SALES_CONTRACTS, query, limit=200, sort=[("created_at", -1)])
    return serialize_docs(docs)


async def get_contract_progress(contract_id: str, current_user: Dict) -> InstallmentProgress:
    company_id = current_user["company_id"]
    contract = await _get_contract(contract_id, company_id)

    amounts = await contract_payment_amounts(company_id, contract_id)
    return installment_progress(contract.get("total_sale_price"), amounts)
