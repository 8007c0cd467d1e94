from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from messbook.db.mongo import get_db
from messbook.core.auth import get_current_user, require_admin
from messbook.models.user import UserResponse
from messbook.schemas.expense import ExpenseCreate, ExpenseResponse, ExpenseSummary, ExpenseUpdate
from messbook.services.expense_service import ExpenseService

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def add_expense(
    payload: ExpenseCreate,
    current_user: UserResponse = Depends(require_admin),
    db = Depends(get_db)
):
    expense = await ExpenseService(db).add_expense(payload, current_user)
    return ExpenseResponse.model_validate(expense)


@router.get("", response_model=List[ExpenseResponse])
async def list_expenses(
    month: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    expenses = await ExpenseService(db).list_expenses(month=month, category=category)
    return [ExpenseResponse.model_validate(expense) for expense in expenses]


@router.get("/summary", response_model=ExpenseSummary)
async def expense_summary(
    month: Optional[str] = Query(None),
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Month total, count and category breakdown."""
    return await ExpenseService(db).expense_summary(month)


@router.get("/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    expense_id: str,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    expense = await ExpenseService(db).get(expense_id)
    return ExpenseResponse.model_validate(expense)


@router.put("/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: str,
    payload: ExpenseUpdate,
    current_user: UserResponse = Depends(require_admin),
    db = Depends(get_db)
):
    expense = await ExpenseService(db).update_expense(expense_id, payload)
    return ExpenseResponse.model_validate(expense)


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: str,
    current_user: UserResponse = Depends(require_admin),
    db = Depends(get_db)
):
    await ExpenseService(db).delete(expense_id)
