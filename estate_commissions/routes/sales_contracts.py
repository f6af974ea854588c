"""
Sales contract routes
"""
from fastapi import APIRouter, HTTPException, status, Depends
from typing import Optional

from estate_commissions.engine.installments import InstallmentProgress
from estate_commissions.models.sales_contract import SalesContractCreate
from estate_commissions.services import sales_contract_service
from estate_commissions.services.commission_service import NotFoundError
from estate_commissions.utils.auth import get_current_user

router = APIRouter(prefix="/sales-contracts", tags=["Sales Contracts"])


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_sales_contract(
    contract: SalesContractCreate,
    current_user: dict = Depends(get_current_user),
):
    return await sales_contract_service.create_sales_contract(contract, current_user)


@router.get("/")
async def list_sales_contracts(
    reference: Optional[str] = None,
    status_filter: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
):
    return await sales_contract_service.list_sales_contracts(current_user, reference, status_filter)


@router.get("/{contract_id}")
async def get_sales_contract(
    contract_id: str,
    current_user: dict = Depends(get_current_user),
):
    try:
        return await sales_contract_service.get_sales_contract(contract_id, current_user)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{contract_id}/progress", response_model=InstallmentProgress)
async def get_sales_contract_progress(
    contract_id: str,
    current_user: dict = Depends(get_current_user),
):
    """Collected vs outstanding on an installment sale"""
    try:
        return await sales_contract_service.get_contract_progress(contract_id, current_user)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
