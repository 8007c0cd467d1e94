from datetime import date as Date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from messbook.models.meal import MealType


class MealCreate(BaseModel):
    date: Date
    meal_type: MealType
    guest_count: int = Field(default=0, ge=0)
    # Admins may log a meal on behalf of another member
    user_id: Optional[str] = None


class MealUpdate(BaseModel):
    date: Optional[Date] = None
    meal_type: Optional[MealType] = None
    guest_count: Optional[int] = Field(default=None, ge=0)


class MealResponse(BaseModel):
    id: str
    user_id: str
    user_name: str
    date: datetime
    meal_type: str
    guest_count: int
    meal_weight: float
    month: str
    locked: bool

    model_config = {"from_attributes": True}


class MealStats(BaseModel):
    """Slot counts for one member in one month; ``total`` includes guests."""
    month: str
    user_id: str
    breakfast: int
    lunch: int
    dinner: int
    guest_meals: int
    total: int
