from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from messbook.core.exceptions import MonthLockedError, NotFoundError, PermissionDeniedError
from messbook.models.deposit import Deposit, DepositStatus
from messbook.models.report import MonthlyReport
from messbook.models.user import UserResponse
from messbook.repositories.deposit_repo import DepositRepository
from messbook.repositories.user_repo import UserRepository
from messbook.schemas.deposit import DepositCreate, DepositRequest, DepositSummary, DepositUpdate
from messbook.services.record_service import RecordService
from messbook.services.settlement import round_money
from messbook.utils.months import month_of, start_of_day


class DepositService(RecordService[Deposit]):
    label = "deposit"

    def __init__(self, db: AsyncIOMotorDatabase):
        super().__init__(db, DepositRepository(db))
        self.users = UserRepository(db)

    async def add_deposit(self, payload: DepositCreate, actor: UserResponse) -> Deposit:
        """Admin-recorded deposit, approved immediately."""
        user = await self.users.get_by_id(payload.user_id)
        if user is None:
            raise NotFoundError("User not found")
        return await self._create(self._build(payload, user.id, user.name, actor, DepositStatus.APPROVED))

    async def request_deposit(self, payload: DepositRequest, actor: UserResponse) -> Deposit:
        """Member-reported deposit, pending until an admin reviews it."""
        return await self._create(self._build(payload, actor.id, actor.name, actor, DepositStatus.PENDING))

    async def review_deposit(self, deposit_id: str, status: str) -> Deposit:
        deposit = await self.get(deposit_id)
        await self.guard.ensure_can_modify(deposit, self.repo, action="review deposits")
        updated = await self.repo.update(deposit_id, {"status": DepositStatus(status).value})
        if updated is None:
            raise MonthLockedError(deposit.month, "review deposits")
        self.logger.info("deposit_reviewed", record_id=deposit_id, status=updated.status)
        return updated

    async def update_deposit(self, deposit_id: str, payload: DepositUpdate, actor: UserResponse) -> Deposit:
        """Admins edit any deposit; members only their own pending requests."""
        deposit = await self.get(deposit_id)
        self._ensure_may_change(deposit, actor, "update")
        return await self._update(deposit_id, self._changes(payload))

    async def delete_deposit(self, deposit_id: str, actor: UserResponse) -> None:
        deposit = await self.get(deposit_id)
        self._ensure_may_change(deposit, actor, "delete")
        await self.delete(deposit_id)

    async def deposit_summary(
        self,
        actor: UserResponse,
        month: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> DepositSummary:
        """Approved deposits for one member, defaulting to the caller and this month."""
        month = self._month_or_current(month)
        subject = self._subject_id(actor, user_id)
        approved = await self.repo.search({
            "user_id": subject,
            "month": month,
            "status": DepositStatus.APPROVED.value
        })
        return DepositSummary(
            month=month,
            user_id=subject,
            total=round_money(sum(deposit.amount for deposit in approved)),
            count=len(approved),
        )

    async def list_deposits(
        self,
        actor: UserResponse,
        month: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> List[Deposit]:
        if actor.is_admin:
            filters = {"user_id": user_id} if user_id else {}
        else:
            filters = {"user_id": actor.id}
        return await self.repo.search(self._month_filter(filters, month))

    @staticmethod
    def _build(payload, user_id: str, user_name: str, actor: UserResponse, status: DepositStatus) -> Deposit:
        day = start_of_day(payload.date)
        return Deposit(
            user_id=user_id,
            user_name=user_name,
            amount=payload.amount,
            date=day,
            month=month_of(day),
            payment_method=payload.payment_method,
            note=payload.note,
            status=status,
            added_by=actor.id,
        )

    async def _counted_in(self, report: MonthlyReport, record: Deposit) -> bool:
        # Pending deposits never reach a report
        line = report.line_for(record.user_id)
        if not record.is_approved or line is None:
            return False
        approved = await self.repo.search({
            "user_id": record.user_id,
            "month": record.month,
            "status": DepositStatus.APPROVED.value
        })
        return round_money(sum(deposit.amount for deposit in approved)) == line.total_deposits

    @staticmethod
    def _ensure_may_change(deposit: Deposit, actor: UserResponse, verb: str) -> None:
        if actor.is_admin:
            return
        if deposit.user_id != actor.id:
            raise PermissionDeniedError(f"Not authorized to {verb} this deposit")
        if deposit.status != DepositStatus.PENDING:
            raise PermissionDeniedError(f"Cannot {verb} an already approved or rejected deposit")
