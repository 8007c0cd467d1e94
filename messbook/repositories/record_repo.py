"""
MonthScopedRepository - shared storage operations for month-partitioned records.

Meals, deposits and expenses all carry a ``month`` key and a ``locked`` flag.
Mutations filter on ``locked: False`` so a locked document is never changed
even if a caller skipped the lock guard.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from messbook.models.base import MongoModel, to_object_id

ModelT = TypeVar("ModelT", bound=MongoModel)


class MonthScopedRepository(Generic[ModelT]):
    """Base repository for records partitioned by month key."""

    collection_name: str = ""
    model: Type[ModelT]

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db[self.collection_name]

    async def insert(self, record: ModelT) -> ModelT:
        """Insert a new record and return it with its id."""
        doc = record.to_mongo()
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self.model.from_mongo(doc)

    async def get(self, record_id: str) -> Optional[ModelT]:
        """Get a record by id, None when missing or the id is malformed."""
        oid = to_object_id(record_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return self.model.from_mongo(doc)

    async def find_by_month(self, month: str, session=None) -> List[ModelT]:
        """All records of a month, oldest first."""
        cursor = self.collection.find({"month": month}, session=session).sort("date", 1)
        docs = await cursor.to_list(None)
        return [self.model.from_mongo(doc) for doc in docs]

    async def count(self, filters: Dict[str, Any]) -> int:
        return await self.collection.count_documents(filters)

    async def has_locked(self, month: str) -> bool:
        """Whether any record of the month already carries the lock flag."""
        doc = await self.collection.find_one({"month": month, "locked": True})
        return doc is not None

    async def search(self, filters: Optional[Dict[str, Any]] = None) -> List[ModelT]:
        """Records matching ``filters``, newest first."""
        cursor = self.collection.find(filters or {}).sort("date", -1)
        docs = await cursor.to_list(None)
        return [self.model.from_mongo(doc) for doc in docs]

    async def update(self, record_id: str, changes: Dict[str, Any]) -> Optional[ModelT]:
        """
        Apply ``changes`` to an unlocked record.

        Returns the updated record, or None if it is missing or locked.
        """
        oid = to_object_id(record_id)
        if oid is None:
            return None
        changes = dict(changes)
        changes["updated_at"] = datetime.now(timezone.utc)
        doc = await self.collection.find_one_and_update(
            {"_id": oid, "locked": False},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        return self.model.from_mongo(doc)

    async def delete(self, record_id: str) -> bool:
        """Delete an unlocked record."""
        oid = to_object_id(record_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid, "locked": False})
        return result.deleted_count > 0

    async def discard(self, record_id: str) -> None:
        """Remove a record whatever its lock flag. Only for undoing a refused insert."""
        await self.collection.delete_one({"_id": to_object_id(record_id)})

    async def lock_one(self, record_id: str) -> Optional[ModelT]:
        doc = await self.collection.find_one_and_update(
            {"_id": to_object_id(record_id)},
            {"$set": {"locked": True, "updated_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER
        )
        return self.model.from_mongo(doc)

    async def lock_all(self, month: str, session=None) -> int:
        """
        Set ``locked`` on every record of the month.

        Idempotent: records already locked are matched but not modified.
        Returns the number of records newly locked.
        """
        result = await self.collection.update_many(
            {"month": month, "locked": {"$ne": True}},
            {"$set": {"locked": True, "updated_at": datetime.now(timezone.utc)}},
            session=session
        )
        return result.modified_count
