from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from messbook.core.config import settings
from messbook.core.exceptions import AlreadyClosedError, NotFoundError, StorageError
from messbook.core.logging import get_logger
from messbook.models.report import MonthlyReport
from messbook.repositories.deposit_repo import DepositRepository
from messbook.repositories.expense_repo import ExpenseRepository
from messbook.repositories.meal_repo import MealRepository
from messbook.repositories.report_repo import ReportRepository
from messbook.repositories.user_repo import UserRepository
from messbook.schemas.report import MonthStatusResponse, MonthValidation
from messbook.services.settlement import assess_month, compute_report, participant_ids
from messbook.utils.months import normalize_month

logger = get_logger(__name__)


class SettlementService:
    """Validates, closes and reports on billing months."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        weighting: Optional[str] = None,
        use_transactions: Optional[bool] = None
    ):
        self.db = db
        self.weighting = weighting or settings.MEAL_WEIGHTING
        self.use_transactions = (
            settings.USE_TRANSACTIONS if use_transactions is None else use_transactions
        )
        self.users = UserRepository(db)
        self.meals = MealRepository(db)
        self.deposits = DepositRepository(db)
        self.expenses = ExpenseRepository(db)
        self.reports = ReportRepository(db)
        self.logger = logger.bind(service="settlement_service")

    async def validate_month(self, month: str) -> MonthValidation:
        """
        Dry run of close_month. Reads only.

        Raises ValidationError for a malformed month and AlreadyClosedError
        when the month has a report.
        """
        month = normalize_month(month)
        if await self.reports.exists(month):
            raise AlreadyClosedError(month)

        active_users = await self.users.list_active()
        meals = await self.meals.find_by_month(month)
        deposits = await self.deposits.find_by_month(month)
        expenses = await self.expenses.find_by_month(month)

        active_ids = {user.id for user in active_users}
        inactive = [
            uid for uid in participant_ids(active_users, meals, deposits)
            if uid not in active_ids
        ]

        result = assess_month(month, meals, deposits, expenses, self.weighting, inactive)
        self.logger.info(
            "month_validated",
            month=month,
            valid=result.valid,
            errors=len(result.errors),
            warnings=len(result.warnings)
        )
        return result

    async def close_month(self, month: str, closed_by: str) -> MonthlyReport:
        """
        Settle a month: write its report, then lock its records.

        Preconditions are checked before any write. If the lock sweep fails
        after the report was written, StorageError is raised and
        relock_month can be run to finish the sweep.
        """
        month = normalize_month(month)
        log = self.logger.bind(month=month)

        if await self.reports.exists(month):
            raise AlreadyClosedError(month)

        log.info("close_month_started", closed_by=closed_by, weighting=self.weighting)

        active_users = await self.users.list_active()
        meals = await self.meals.find_by_month(month)
        deposits = await self.deposits.find_by_month(month)
        expenses = await self.expenses.find_by_month(month)

        active_ids = {user.id for user in active_users}
        others = [
            uid for uid in participant_ids(active_users, meals, deposits)
            if uid not in active_ids
        ]
        known_users = {user.id: user for user in await self.users.get_many(others)}

        report = compute_report(
            month,
            active_users,
            meals,
            deposits,
            expenses,
            closed_by=closed_by,
            weighting=self.weighting,
            known_users=known_users,
        )

        if self.use_transactions:
            saved = await self._persist_in_transaction(report)
        else:
            saved = await self._persist(report)

        log.info(
            "close_month_finished",
            total_expenses=saved.total_expenses,
            total_units=saved.total_consumption_units,
            cost_per_unit=saved.cost_per_unit,
            users=len(saved.user_lines)
        )
        return saved

    async def relock_month(self, month: str) -> Dict[str, int]:
        """Re-run the lock sweep for a closed month. Safe to repeat."""
        month = normalize_month(month)
        if not await self.reports.exists(month):
            raise NotFoundError(f"Month {month} has not been closed")
        try:
            counts = await self._lock_month(month)
        except PyMongoError as exc:
            self.logger.error("relock_failed", month=month, error=str(exc))
            raise StorageError(f"Failed to lock records for {month}") from exc
        self.logger.info("month_relocked", month=month, **counts)
        return counts

    async def list_reports(self) -> List[MonthlyReport]:
        return await self.reports.list_all()

    async def get_report(self, month: str) -> MonthlyReport:
        month = normalize_month(month)
        report = await self.reports.find_by_month(month)
        if report is None:
            raise NotFoundError(f"Report not found for {month}")
        return report

    async def month_status(self, month: str) -> MonthStatusResponse:
        month = normalize_month(month)
        report = await self.reports.find_by_month(month)
        return MonthStatusResponse(
            month=month,
            is_closed=report is not None,
            closed_at=report.closed_at if report else None
        )

    # ===== PRIVATE HELPERS =====

    async def _persist(self, report: MonthlyReport) -> MonthlyReport:
        try:
            saved = await self.reports.create_unique(report)
        except PyMongoError as exc:
            self.logger.error("report_write_failed", month=report.month, error=str(exc))
            raise StorageError(f"Failed to write report for {report.month}") from exc

        self.logger.info("report_written", month=report.month, report_id=saved.id)

        try:
            counts = await self._lock_month(report.month)
        except PyMongoError as exc:
            self.logger.error(
                "lock_sweep_failed",
                month=report.month,
                error=str(exc),
                hint="report is written; run relock for this month"
            )
            raise StorageError(
                f"Report for {report.month} was written but locking records failed"
            ) from exc

        self.logger.info("records_locked", month=report.month, **counts)
        return saved

    async def _persist_in_transaction(self, report: MonthlyReport) -> MonthlyReport:
        try:
            async with await self.db.client.start_session() as session:
                async with session.start_transaction():
                    saved = await self.reports.create_unique(report, session=session)
                    counts = await self._lock_month(report.month, session=session)
        except PyMongoError as exc:
            self.logger.error("close_transaction_failed", month=report.month, error=str(exc))
            raise StorageError(f"Failed to close {report.month}") from exc

        self.logger.info("records_locked", month=report.month, report_id=saved.id, **counts)
        return saved

    async def _lock_month(self, month: str, session=None) -> Dict[str, int]:
        return {
            "meals_locked": await self.meals.lock_all(month, session=session),
            "deposits_locked": await self.deposits.lock_all(month, session=session),
            "expenses_locked": await self.expenses.lock_all(month, session=session),
        }
