"""
MonthlyReport model - the settlement artifact of a closed month.

Design principles:
- Exactly one report per month (unique index on month)
- Immutable once created: the repository exposes no update or delete
- Its existence is what marks a month as closed
- user_name is a snapshot, later renames do not rewrite history
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from messbook.models.base import MongoModel, ObjectIdStr


class UserLine(BaseModel):
    """One member's share of a closed month."""
    user_id: ObjectIdStr
    user_name: str
    breakfast_count: int = 0
    lunch_count: int = 0
    dinner_count: int = 0
    guest_units: float = 0
    total_units: float = 0
    amount_due: float = 0
    total_deposits: float = 0
    balance: float = 0      # amount_due - total_deposits, positive means owes


class MonthlyReport(MongoModel):
    month: str
    year: int
    month_name: str
    meal_weighting: str = "unit"

    total_consumption_units: float
    total_expenses: float
    cost_per_unit: float
    expense_breakdown: Dict[str, float] = Field(default_factory=dict)
    user_lines: List[UserLine] = Field(default_factory=list)

    closed_at: datetime
    closed_by: ObjectIdStr
    locked: bool = True

    def line_for(self, user_id: str) -> Optional[UserLine]:
        for line in self.user_lines:
            if line.user_id == user_id:
                return line
        return None
