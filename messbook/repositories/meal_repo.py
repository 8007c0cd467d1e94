from datetime import datetime
from typing import Optional

from pymongo.errors import DuplicateKeyError

from messbook.core.exceptions import DuplicateMealError
from messbook.models.meal import Meal
from messbook.repositories.record_repo import MonthScopedRepository


class MealRepository(MonthScopedRepository[Meal]):
    """Meal database operations."""

    collection_name = "meals"
    model = Meal

    async def insert(self, record: Meal) -> Meal:
        try:
            return await super().insert(record)
        except DuplicateKeyError:
            raise DuplicateMealError(
                f"{record.meal_type} already recorded for this user on {record.date.date()}"
            )

    async def find_slot(self, user_id: str, date: datetime, meal_type: str) -> Optional[Meal]:
        """The meal a user logged for a given date and slot, if any."""
        doc = await self.collection.find_one({
            "user_id": user_id,
            "date": date,
            "meal_type": meal_type
        })
        return Meal.from_mongo(doc)
