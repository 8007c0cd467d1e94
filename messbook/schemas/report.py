from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class MonthRequest(BaseModel):
    """Request body naming a billing month."""
    month: str = Field(..., description="Billing month in YYYY-MM format")


class ValidationStats(BaseModel):
    meal_count: int = 0
    total_units: float = 0
    expense_count: int = 0
    total_expenses: float = 0
    deposit_count: int = 0
    pending_deposit_count: int = 0
    total_deposits: float = 0


class MonthValidation(BaseModel):
    """Dry-run outcome of closing a month."""
    month: str
    valid: bool
    stats: ValidationStats
    warnings: List[str] = []
    errors: List[str] = []


class UserLineResponse(BaseModel):
    user_id: str
    user_name: str
    breakfast_count: int
    lunch_count: int
    dinner_count: int
    guest_units: float
    total_units: float
    amount_due: float
    total_deposits: float
    balance: float

    model_config = {"from_attributes": True}


class ReportResponse(BaseModel):
    """Full report, as seen by an admin."""
    id: str
    month: str
    year: int
    month_name: str
    meal_weighting: str
    total_consumption_units: float
    total_expenses: float
    cost_per_unit: float
    expense_breakdown: Dict[str, float]
    user_lines: List[UserLineResponse]
    closed_at: datetime
    closed_by: str
    locked: bool


class MemberReportResponse(BaseModel):
    """Report trimmed to the caller's own line."""
    month: str
    year: int
    month_name: str
    total_consumption_units: float
    total_expenses: float
    cost_per_unit: float
    expense_breakdown: Dict[str, float]
    user_line: Optional[UserLineResponse] = None
    closed_at: datetime


class ReportHistoryEntry(BaseModel):
    month: str
    year: int
    month_name: str
    cost_per_unit: float
    user_line: Optional[UserLineResponse] = None
    closed_at: datetime


class MonthStatusResponse(BaseModel):
    month: str
    is_closed: bool
    closed_at: Optional[datetime] = None


class RelockResponse(BaseModel):
    month: str
    meals_locked: int
    deposits_locked: int
    expenses_locked: int
