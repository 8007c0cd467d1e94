from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from messbook.db.mongo import get_db
from messbook.core.auth import get_current_user, require_admin
from messbook.models.user import UserResponse
from messbook.schemas.deposit import (
    DepositCreate,
    DepositRequest,
    DepositResponse,
    DepositReview,
    DepositSummary,
    DepositUpdate,
)
from messbook.services.deposit_service import DepositService

router = APIRouter(prefix="/deposits", tags=["deposits"])


@router.post("", response_model=DepositResponse, status_code=status.HTTP_201_CREATED)
async def add_deposit(
    payload: DepositCreate,
    current_user: UserResponse = Depends(require_admin),
    db = Depends(get_db)
):
    """Record a deposit for a member (approved immediately)."""
    deposit = await DepositService(db).add_deposit(payload, current_user)
    return DepositResponse.model_validate(deposit)


@router.post("/request", response_model=DepositResponse, status_code=status.HTTP_201_CREATED)
async def request_deposit(
    payload: DepositRequest,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Report a deposit for admin approval."""
    deposit = await DepositService(db).request_deposit(payload, current_user)
    return DepositResponse.model_validate(deposit)


@router.get("", response_model=List[DepositResponse])
async def list_deposits(
    month: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    deposits = await DepositService(db).list_deposits(current_user, month=month, user_id=user_id)
    return [DepositResponse.model_validate(deposit) for deposit in deposits]


@router.get("/summary", response_model=DepositSummary)
async def deposit_summary(
    month: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Approved deposit total and count for a month."""
    return await DepositService(db).deposit_summary(current_user, month=month, user_id=user_id)


@router.put("/{deposit_id}/approve", response_model=DepositResponse)
async def review_deposit(
    deposit_id: str,
    payload: DepositReview,
    current_user: UserResponse = Depends(require_admin),
    db = Depends(get_db)
):
    """Approve or reject a pending deposit."""
    deposit = await DepositService(db).review_deposit(deposit_id, payload.status)
    return DepositResponse.model_validate(deposit)


@router.put("/{deposit_id}", response_model=DepositResponse)
async def update_deposit(
    deposit_id: str,
    payload: DepositUpdate,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Admins edit any deposit; members only their own pending requests."""
    deposit = await DepositService(db).update_deposit(deposit_id, payload, current_user)
    return DepositResponse.model_validate(deposit)


@router.delete("/{deposit_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deposit(
    deposit_id: str,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    await DepositService(db).delete_deposit(deposit_id, current_user)
