from datetime import date as Date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from messbook.models.deposit import PaymentMethod


class DepositCreate(BaseModel):
    """Deposit recorded by an admin, approved on creation."""
    user_id: str
    amount: float = Field(..., gt=0)
    date: Date
    payment_method: PaymentMethod = PaymentMethod.CASH
    note: str = ""


class DepositRequest(BaseModel):
    """Deposit a member reports for themselves, pending admin review."""
    amount: float = Field(..., gt=0)
    date: Date
    payment_method: PaymentMethod = PaymentMethod.CASH
    note: str = ""


class DepositReview(BaseModel):
    status: Literal["approved", "rejected"]


class DepositUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0)
    date: Optional[Date] = None
    payment_method: Optional[PaymentMethod] = None
    note: Optional[str] = None


class DepositResponse(BaseModel):
    id: str
    user_id: str
    user_name: str
    amount: float
    date: datetime
    month: str
    payment_method: str
    note: str
    status: str
    locked: bool

    model_config = {"from_attributes": True}


class DepositSummary(BaseModel):
    """Approved deposits of one member in one month."""
    month: str
    user_id: str
    total: float
    count: int
