from messbook.models.deposit import Deposit
from messbook.repositories.record_repo import MonthScopedRepository


class DepositRepository(MonthScopedRepository[Deposit]):
    """Deposit database operations."""

    collection_name = "deposits"
    model = Deposit
