from datetime import date
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from messbook.core.exceptions import DuplicateMealError, NotFoundError, PermissionDeniedError
from messbook.models.meal import Meal, MealType, weight_for
from messbook.models.report import MonthlyReport
from messbook.models.user import UserResponse
from messbook.repositories.meal_repo import MealRepository
from messbook.repositories.user_repo import UserRepository
from messbook.schemas.meal import MealCreate, MealStats, MealUpdate
from messbook.services.record_service import RecordService
from messbook.services.settlement import WEIGHTING_UNIT, MealTally, tally_meals
from messbook.utils.months import month_of, start_of_day


class MealService(RecordService[Meal]):
    label = "meal"

    def __init__(self, db: AsyncIOMotorDatabase):
        super().__init__(db, MealRepository(db))
        self.users = UserRepository(db)

    async def add_meal(self, payload: MealCreate, actor: UserResponse) -> Meal:
        """Log a meal for the caller, or for any member when the caller is admin."""
        user_id = payload.user_id or actor.id
        if user_id != actor.id and not actor.is_admin:
            raise PermissionDeniedError("Only admins can add meals for other members")

        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")

        day = start_of_day(payload.date)
        meal_type = payload.meal_type.value

        existing = await self.repo.find_slot(user.id, day, meal_type)
        if existing is not None:
            raise DuplicateMealError(f"{meal_type} already recorded for {day.date()}")

        meal = Meal(
            user_id=user.id,
            user_name=user.name,
            date=day,
            meal_type=meal_type,
            guest_count=payload.guest_count,
            meal_weight=weight_for(meal_type),
            month=month_of(day),
            created_by=actor.id,
        )
        return await self._create(meal)

    async def list_meals(
        self,
        actor: UserResponse,
        month: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> List[Meal]:
        """Members see their own meals; admins may filter by any user."""
        if actor.is_admin:
            filters = {"user_id": user_id} if user_id else {}
        else:
            filters = {"user_id": actor.id}
        return await self.repo.search(self._month_filter(filters, month))

    async def update_meal(self, meal_id: str, payload: MealUpdate, actor: UserResponse) -> Meal:
        changes = self._changes(payload)
        if "meal_type" in changes:
            changes["meal_weight"] = weight_for(changes["meal_type"])
        changes["updated_by"] = actor.id
        return await self._update(meal_id, changes)

    async def get_meal(self, meal_id: str, actor: UserResponse) -> Meal:
        meal = await self.get(meal_id)
        if meal.user_id != actor.id and not actor.is_admin:
            raise PermissionDeniedError("Not authorized to access this meal")
        return meal

    async def today_meals(self, actor: UserResponse) -> List[Meal]:
        """The caller's meals for the current day."""
        return await self.repo.search({"user_id": actor.id, "date": start_of_day(date.today())})

    async def monthly_stats(
        self,
        actor: UserResponse,
        month: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> MealStats:
        """Slot and guest counts for one member, defaulting to the caller and this month."""
        month = self._month_or_current(month)
        subject = self._subject_id(actor, user_id)

        meals = await self.repo.search({"user_id": subject, "month": month})
        tallies, _ = tally_meals(meals, WEIGHTING_UNIT)
        tally = tallies.get(subject, MealTally())
        guests = int(tally.guest_units)

        return MealStats(
            month=month,
            user_id=subject,
            breakfast=tally.breakfast,
            lunch=tally.lunch,
            dinner=tally.dinner,
            guest_meals=guests,
            total=tally.breakfast + tally.lunch + tally.dinner + guests,
        )

    async def _counted_in(self, report: MonthlyReport, record: Meal) -> bool:
        # One meal per user, date and slot, so the slot count pins the record down
        line = report.line_for(record.user_id)
        if line is None:
            return False
        recorded = {
            MealType.BREAKFAST.value: line.breakfast_count,
            MealType.LUNCH.value: line.lunch_count,
            MealType.DINNER.value: line.dinner_count,
        }[record.meal_type]
        stored = await self.repo.count({
            "user_id": record.user_id,
            "month": record.month,
            "meal_type": record.meal_type
        })
        return stored == recorded
