"""
Meal model - one meal slot taken by one member on one day.

- One record per (user, date, meal_type), enforced by a unique index
- meal_weight is derived from meal_type and stored with the record
- month is derived from date and is the locking partition key
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from messbook.models.base import MongoModel, ObjectIdStr


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


MEAL_WEIGHTS = {
    MealType.BREAKFAST.value: 0.5,
    MealType.LUNCH.value: 1.0,
    MealType.DINNER.value: 1.0,
}


def weight_for(meal_type: str) -> float:
    return MEAL_WEIGHTS[MealType(meal_type).value]


class Meal(MongoModel):
    user_id: ObjectIdStr
    user_name: str          # Snapshot at write time
    date: datetime
    meal_type: MealType
    guest_count: int = Field(default=0, ge=0)
    meal_weight: float = 1.0
    month: str              # YYYY-MM
    locked: bool = False

    created_by: Optional[ObjectIdStr] = None
    updated_by: Optional[ObjectIdStr] = None
