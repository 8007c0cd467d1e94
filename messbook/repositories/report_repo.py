"""
ReportRepository - storage for closed-month settlement reports.

Reports are write-once; there is no update or delete.
The unique index on ``month`` turns a racing second close into
AlreadyClosedError.
"""

from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from messbook.core.exceptions import AlreadyClosedError
from messbook.models.report import MonthlyReport


class ReportRepository:
    """Monthly report database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["reports"]

    async def find_by_month(self, month: str) -> Optional[MonthlyReport]:
        doc = await self.collection.find_one({"month": month})
        return MonthlyReport.from_mongo(doc)

    async def exists(self, month: str) -> bool:
        return await self.collection.find_one({"month": month}, {"_id": 1}) is not None

    async def create_unique(self, report: MonthlyReport, session=None) -> MonthlyReport:
        """Insert the report; raises AlreadyClosedError if the month is taken."""
        doc = report.to_mongo()
        try:
            result = await self.collection.insert_one(doc, session=session)
        except DuplicateKeyError:
            raise AlreadyClosedError(report.month)
        doc["_id"] = result.inserted_id
        return MonthlyReport.from_mongo(doc)

    async def list_all(self) -> List[MonthlyReport]:
        """All reports, most recent month first."""
        docs = await self.collection.find({}).sort("month", -1).to_list(None)
        return [MonthlyReport.from_mongo(doc) for doc in docs]
