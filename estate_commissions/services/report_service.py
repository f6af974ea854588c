"""
Commission reports – agent, agency, PREA and per-property roll-ups.

Reports are re-derived from the stored allocations on every request, so
recomputing a report never double counts.
"""
import logging
from typing import Any, Dict, List, Optional

from estate_commissions.config.database import Collections, db_config
from estate_commissions.engine.aggregation import accumulate
from estate_commissions.models.commission import CommissionAllocation
from estate_commissions.models.report import GroupBy, Period, ReportTotals
from estate_commissions.utils.helpers import allocation_from_doc, to_local

logger = logging.getLogger(__name__)


async def load_allocations(
    company_id: str,
    agent_id: Optional[str] = None,
    property_id: Optional[str] = None,
) -> List[CommissionAllocation]:
    """All finalized (non-reversed) allocations for a company, dated in local time."""
    query: Dict[str, Any] = {"company_id": company_id, "is_reversed": {"$ne": True}}
    if agent_id:    query["agent_id"] = agent_id
    if property_id: query["property_id"] = property_id

    coll = db_config.get_collection(Collections.PAYMENTS)
    allocations = []
    async for doc in coll.find(query):
        if not doc.get("allocation"):
            continue
        allocation = allocation_from_doc(doc)
        allocations.append(allocation.model_copy(update={"payment_date": to_local(allocation.payment_date)}))
    return allocations


async def build_report(
    company_id: str,
    group_by: GroupBy,
    period: Period,
    agent_id: Optional[str] = None,
    property_id: Optional[str] = None,
) -> ReportTotals:
    allocations = await load_allocations(company_id, agent_id=agent_id, property_id=property_id)
    report = accumulate(allocations, group_by, period)
    logger.debug(
        "%s report for company %s over %d payments: total=%s",
        group_by.value, company_id, len(allocations), report.total,
    )
    return report
