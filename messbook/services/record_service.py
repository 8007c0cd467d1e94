"""Shared mutation path for meals, deposits and expenses.

Each write consults MonthLockGuard first; the repository's ``locked: False``
filter catches a close that lands between the check and the write. Inserts
look for the month's report again once the document is stored.
"""
from typing import Any, Dict, Generic, Optional, TypeVar

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from messbook.core.exceptions import ConflictError, MonthLockedError, NotFoundError
from messbook.core.logging import get_logger
from messbook.models.base import MongoModel
from messbook.models.report import MonthlyReport
from messbook.models.user import UserResponse
from messbook.repositories.record_repo import MonthScopedRepository
from messbook.services.lock_guard import MonthLockGuard
from messbook.utils.months import MonthKey, month_of, normalize_month, start_of_day

ModelT = TypeVar("ModelT", bound=MongoModel)

logger = get_logger(__name__)


class RecordService(Generic[ModelT]):
    """Lock-aware create, update and delete for one record type."""

    label = "record"

    def __init__(self, db: AsyncIOMotorDatabase, repo: MonthScopedRepository):
        self.db = db
        self.repo = repo
        self.guard = MonthLockGuard(db)
        self.logger = logger.bind(service=f"{self.label}_service")

    async def get(self, record_id: str) -> ModelT:
        record = await self.repo.get(record_id)
        if record is None:
            raise NotFoundError(f"{self.label.capitalize()} not found")
        return record

    async def _create(self, record: ModelT) -> ModelT:
        action = f"add {self.label}s"
        await self.guard.ensure_can_create(record.month, self.repo, action)
        saved = await self.repo.insert(record)

        # The month may have been closed while the insert was in flight
        report = await self.guard.closed_report(saved.month)
        if report is not None:
            return await self._settle_late_insert(saved, report, action)

        self.logger.info(f"{self.label}_created", record_id=saved.id, month=saved.month)
        return saved

    async def _settle_late_insert(self, saved: ModelT, report: MonthlyReport, action: str) -> ModelT:
        """
        Resolve an insert that raced a close of the same month.

        If the report already accounts for the record it stays, locked.
        Otherwise the record is removed and the create is refused.
        """
        if await self._counted_in(report, saved):
            self.logger.info(f"{self.label}_created", record_id=saved.id, month=saved.month, settled_by_close=True)
            return await self.repo.lock_one(saved.id)

        await self.repo.discard(saved.id)
        self.logger.warning(f"{self.label}_discarded", record_id=saved.id, month=saved.month)
        raise MonthLockedError(saved.month, action)

    async def _counted_in(self, report: MonthlyReport, record: ModelT) -> bool:
        """Whether ``report`` already reflects ``record``."""
        return False

    async def _update(self, record_id: str, changes: Dict[str, Any]) -> ModelT:
        record = await self.get(record_id)

        if "date" in changes and changes["date"] is not None:
            changes["date"] = start_of_day(changes["date"])
            changes["month"] = month_of(changes["date"])

        await self.guard.ensure_can_modify(
            record,
            self.repo,
            action=f"update {self.label}s",
            target_month=changes.get("month")
        )

        try:
            updated = await self.repo.update(record_id, changes)
        except DuplicateKeyError:
            raise ConflictError(f"Another {self.label} already exists with these values")
        if updated is None:
            # Locked between the guard check and the write
            raise MonthLockedError(record.month, f"update {self.label}s")

        self.logger.info(f"{self.label}_updated", record_id=record_id, fields=sorted(changes))
        return updated

    async def delete(self, record_id: str) -> None:
        record = await self.get(record_id)
        await self.guard.ensure_can_modify(record, self.repo, action=f"delete {self.label}s")
        if not await self.repo.delete(record_id):
            raise MonthLockedError(record.month, f"delete {self.label}s")
        self.logger.info(f"{self.label}_deleted", record_id=record_id, month=record.month)

    @staticmethod
    def _changes(payload: Any) -> Dict[str, Any]:
        """Fields the caller actually sent, enums flattened to their values."""
        changes = payload.model_dump(exclude_unset=True, exclude_none=True, mode="python")
        return {k: getattr(v, "value", v) for k, v in changes.items()}

    @staticmethod
    def _subject_id(actor: UserResponse, user_id: Optional[str]) -> str:
        """Member a query is about: admins may name anyone, members get themselves."""
        return user_id if actor.is_admin and user_id else actor.id

    @staticmethod
    def _month_or_current(month: Optional[str]) -> str:
        return normalize_month(month) if month else str(MonthKey.current())

    @staticmethod
    def _month_filter(filters: Dict[str, Any], month: Optional[str]) -> Dict[str, Any]:
        if month:
            filters["month"] = normalize_month(month)
        return filters
