from datetime import date as Date, datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from messbook.models.expense import ExpenseCategory


class ExpenseCreate(BaseModel):
    category: ExpenseCategory
    amount: float = Field(..., gt=0)
    date: Date
    description: str = Field(..., min_length=1)
    receipt_image: str = ""


class ExpenseUpdate(BaseModel):
    category: Optional[ExpenseCategory] = None
    amount: Optional[float] = Field(default=None, gt=0)
    date: Optional[Date] = None
    description: Optional[str] = Field(default=None, min_length=1)
    receipt_image: Optional[str] = None


class ExpenseResponse(BaseModel):
    id: str
    category: str
    amount: float
    date: datetime
    month: str
    description: str
    receipt_image: str
    locked: bool

    model_config = {"from_attributes": True}


class ExpenseSummary(BaseModel):
    month: str
    total: float
    count: int
    category_breakdown: Dict[str, float]
