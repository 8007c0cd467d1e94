from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from messbook.db.mongo import get_db
from messbook.core.auth import get_current_user, require_admin
from messbook.models.user import UserResponse
from messbook.schemas.meal import MealCreate, MealResponse, MealStats, MealUpdate
from messbook.services.meal_service import MealService

router = APIRouter(prefix="/meals", tags=["meals"])


@router.post("", response_model=MealResponse, status_code=status.HTTP_201_CREATED)
async def add_meal(
    payload: MealCreate,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Log a meal. Refused when the month is locked."""
    meal = await MealService(db).add_meal(payload, current_user)
    return MealResponse.model_validate(meal)


@router.get("", response_model=List[MealResponse])
async def list_meals(
    month: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    meals = await MealService(db).list_meals(current_user, month=month, user_id=user_id)
    return [MealResponse.model_validate(meal) for meal in meals]


@router.get("/stats/monthly", response_model=MealStats)
async def monthly_stats(
    month: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    """Breakfast, lunch, dinner and guest counts for one member."""
    return await MealService(db).monthly_stats(current_user, month=month, user_id=user_id)


@router.get("/today", response_model=List[MealResponse])
async def today_meals(
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    meals = await MealService(db).today_meals(current_user)
    return [MealResponse.model_validate(meal) for meal in meals]


@router.get("/{meal_id}", response_model=MealResponse)
async def get_meal(
    meal_id: str,
    current_user: UserResponse = Depends(get_current_user),
    db = Depends(get_db)
):
    meal = await MealService(db).get_meal(meal_id, current_user)
    return MealResponse.model_validate(meal)


@router.put("/{meal_id}", response_model=MealResponse)
async def update_meal(
    meal_id: str,
    payload: MealUpdate,
    current_user: UserResponse = Depends(require_admin),
    db = Depends(get_db)
):
    meal = await MealService(db).update_meal(meal_id, payload, current_user)
    return MealResponse.model_validate(meal)


@router.delete("/{meal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meal(
    meal_id: str,
    current_user: UserResponse = Depends(require_admin),
    db = Depends(get_db)
):
    await MealService(db).delete(meal_id)
