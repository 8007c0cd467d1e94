from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from messbook.models.expense import Expense
from messbook.models.report import MonthlyReport
from messbook.models.user import UserResponse
from messbook.repositories.expense_repo import ExpenseRepository
from messbook.schemas.expense import ExpenseCreate, ExpenseSummary, ExpenseUpdate
from messbook.services.record_service import RecordService
from messbook.services.settlement import round_money, summarize_expenses
from messbook.utils.months import month_of, start_of_day


class ExpenseService(RecordService[Expense]):
    label = "expense"

    def __init__(self, db: AsyncIOMotorDatabase):
        super().__init__(db, ExpenseRepository(db))

    async def add_expense(self, payload: ExpenseCreate, actor: UserResponse) -> Expense:
        day = start_of_day(payload.date)
        expense = Expense(
            category=payload.category.value,
            amount=payload.amount,
            date=day,
            month=month_of(day),
            description=payload.description,
            receipt_image=payload.receipt_image,
            added_by=actor.id,
        )
        return await self._create(expense)

    async def update_expense(self, expense_id: str, payload: ExpenseUpdate) -> Expense:
        return await self._update(expense_id, self._changes(payload))

    async def list_expenses(self, month: Optional[str] = None, category: Optional[str] = None) -> List[Expense]:
        filters = {"category": category} if category else {}
        return await self.repo.search(self._month_filter(filters, month))

    async def expense_summary(self, month: Optional[str] = None) -> ExpenseSummary:
        """Month total, count and per-category breakdown, defaulting to this month."""
        month = self._month_or_current(month)
        expenses = await self.repo.find_by_month(month)
        total, breakdown = summarize_expenses(expenses)
        return ExpenseSummary(
            month=month,
            total=round_money(total),
            count=len(expenses),
            category_breakdown={category: round_money(amount) for category, amount in breakdown.items()},
        )

    async def _counted_in(self, report: MonthlyReport, record: Expense) -> bool:
        total, _ = summarize_expenses(await self.repo.find_by_month(record.month))
        return round_money(total) == report.total_expenses
