from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from messbook.models.base import MongoModel, ObjectIdStr


class DepositStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BKASH = "bkash"
    NAGAD = "nagad"
    BANK = "bank"
    OTHER = "other"


class Deposit(MongoModel):
    """Money paid in by a member. Only approved deposits count at close."""
    user_id: ObjectIdStr
    user_name: str
    amount: float = Field(..., ge=0)
    date: datetime
    month: str
    payment_method: PaymentMethod = PaymentMethod.CASH
    note: str = ""
    status: DepositStatus = DepositStatus.APPROVED
    added_by: Optional[ObjectIdStr] = None
    locked: bool = False

    @property
    def is_approved(self) -> bool:
        return self.status == DepositStatus.APPROVED
