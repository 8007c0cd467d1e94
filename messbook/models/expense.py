from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from messbook.models.base import MongoModel, ObjectIdStr


class ExpenseCategory(str, Enum):
    GROCERY = "grocery"
    ELECTRICITY = "electricity"
    GAS = "gas"
    WATER = "water"
    CLEANING = "cleaning"
    OTHER = "other"


class Expense(MongoModel):
    """Shared cost paid out of the mess fund."""
    # Plain str so legacy documents with unknown categories still load
    category: str = ExpenseCategory.OTHER.value
    amount: float = Field(..., ge=0)
    date: datetime
    month: str
    description: str = ""
    receipt_image: str = ""
    added_by: Optional[ObjectIdStr] = None
    locked: bool = False
