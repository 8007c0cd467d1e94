from messbook.models.expense import Expense
from messbook.repositories.record_repo import MonthScopedRepository


class ExpenseRepository(MonthScopedRepository[Expense]):
    """Expense database operations."""

    collection_name = "expenses"
    model = Expense
