"""
Commission report routes – agent, agency, PREA and property totals
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from estate_commissions.models.report import GroupBy, Period, ReportTotals
from estate_commissions.services.report_service import build_report
from estate_commissions.utils.auth import get_current_user
from estate_commissions.utils.helpers import to_local

router = APIRouter(prefix="/commission-reports", tags=["Commission Reports"])


def _period(year: Optional[int], month: Optional[int]) -> Period:
    today = to_local(datetime.utcnow())
    return Period(year=year or today.year, month=month or today.month)


@router.get("/agent", response_model=ReportTotals)
async def agent_commissions(
    year: Optional[int] = Query(None, ge=1900, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    agent_id: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
):
    return await build_report(current_user["company_id"], GroupBy.AGENT, _period(year, month), agent_id=agent_id)


@router.get("/agency", response_model=ReportTotals)
async def agency_commission(
    year: Optional[int] = Query(None, ge=1900, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    current_user: dict = Depends(get_current_user),
):
    return await build_report(current_user["company_id"], GroupBy.AGENCY, _period(year, month))


@router.get("/prea", response_model=ReportTotals)
async def prea_commission(
    year: Optional[int] = Query(None, ge=1900, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    current_user: dict = Depends(get_current_user),
):
    return await build_report(current_user["company_id"], GroupBy.REGULATORY_BODY, _period(year, month))


@router.get("/property", response_model=ReportTotals)
async def property_commission(
    year: Optional[int] = Query(None, ge=1900, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    property_id: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
):
    return await build_report(
        current_user["company_id"], GroupBy.PROPERTY, _period(year, month), property_id=property_id
    )
