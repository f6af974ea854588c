"""
Payment routes – submission runs the commission engine; a rejected
calculation is returned as an error and nothing is stored.
"""
from fastapi import APIRouter, HTTPException, status, Depends
from typing import List, Optional

from estate_commissions.models.payment import PaymentCreate, PaymentReverse
from estate_commissions.services import commission_service
from estate_commissions.services.commission_service import NotFoundError
from estate_commissions.utils.auth import get_current_user

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_payment(
    payment: PaymentCreate,
    current_user: dict = Depends(get_current_user),
):
    """Record a rental or sale payment with its commission allocation"""
    try:
        return await commission_service.submit_payment(payment, current_user)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/", response_model=List[dict])
async def list_payments(
    property_id: Optional[str] = None,
    agent_id: Optional[str] = None,
    sales_contract_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 20,
    current_user: dict = Depends(get_current_user),
):
    return await commission_service.list_payments(
        current_user,
        property_id=property_id,
        agent_id=agent_id,
        sales_contract_id=sales_contract_id,
        skip=skip,
        limit=limit,
    )


@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    current_user: dict = Depends(get_current_user),
):
    try:
        return await commission_service.get_payment(payment_id, current_user)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{payment_id}/reverse")
async def reverse_payment(
    payment_id: str,
    body: PaymentReverse = PaymentReverse(),
    current_user: dict = Depends(get_current_user),
):
    """Reverse a payment; its allocation drops out of reports and running totals."""
    try:
        return await commission_service.reverse_payment(payment_id, current_user, reason=body.reason)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/property-accounts/{property_id}/rebuild")
async def rebuild_property_account(
    property_id: str,
    current_user: dict = Depends(get_current_user),
):
    """Recompute a property's running totals from its stored allocations"""
    return await commission_service.rebuild_running_totals(current_user["company_id"], property_id)
