from typing import Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from messbook.models.base import to_object_id
from messbook.models.user import User


class UserRepository:
    """Read access to the user directory."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["users"]

    async def list_active(self) -> List[User]:
        """Active users, ordered by name."""
        docs = await self.collection.find({"is_active": True}).sort("name", 1).to_list(None)
        return [User.from_mongo(doc) for doc in docs]

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        oid = to_object_id(user_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return User.from_mongo(doc)

    async def get_many(self, user_ids: Iterable[str]) -> List[User]:
        """Users for the given ids, active or not. Unknown ids are skipped."""
        oids = [oid for oid in (to_object_id(uid) for uid in user_ids) if oid is not None]
        if not oids:
            return []
        docs = await self.collection.find({"_id": {"$in": oids}}).to_list(None)
        return [User.from_mongo(doc) for doc in docs]
