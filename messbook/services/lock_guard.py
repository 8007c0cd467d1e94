"""
Month lock guard.

Every mutating entry point for meals, deposits and expenses goes through
MonthLockGuard. A month counts as locked when its report exists or when any
record of the collection already carries the lock flag. Nothing is cached;
each call reads the current state.
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from messbook.core.exceptions import MonthLockedError
from messbook.models.base import MongoModel
from messbook.models.report import MonthlyReport
from messbook.repositories.record_repo import MonthScopedRepository
from messbook.repositories.report_repo import ReportRepository


class MonthLockGuard:
    """Refuses writes that would touch a closed month."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.reports = ReportRepository(db)

    async def is_month_locked(self, month: str, records: Optional[MonthScopedRepository] = None) -> bool:
        if await self.reports.exists(month):
            return True
        if records is not None and await records.has_locked(month):
            return True
        return False

    async def closed_report(self, month: str) -> Optional[MonthlyReport]:
        """The month's report if it has been closed, else None."""
        return await self.reports.find_by_month(month)

    async def ensure_can_create(self, month: str, records: MonthScopedRepository, action: str = "add records") -> None:
        """Refuse inserts bearing a locked month."""
        if await self.is_month_locked(month, records):
            raise MonthLockedError(month, action)

    async def ensure_can_modify(
        self,
        record: MongoModel,
        records: Optional[MonthScopedRepository] = None,
        action: str = "modify records",
        target_month: Optional[str] = None
    ) -> None:
        """
        Refuse updates and deletes of a locked record.

        ``target_month`` is the month an update would move the record to;
        that month has to be open as well.
        """
        if getattr(record, "locked", False):
            raise MonthLockedError(record.month, action)
        if await self.reports.exists(record.month):
            raise MonthLockedError(record.month, action)
        if target_month and target_month != record.month:
            if await self.is_month_locked(target_month, records):
                raise MonthLockedError(target_month, action)
