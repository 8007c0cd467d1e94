from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from messbook.core.config import settings
from messbook.core.logging import get_logger

logger = get_logger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URL)
    mongodb.db = mongodb.client[settings.DATABASE_NAME]

    await create_indexes(mongodb.db)
    logger.info("mongo_connected", database=settings.DATABASE_NAME)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("mongo_disconnected")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    # One report per month; this is what serialises concurrent closes
    await db["reports"].create_index("month", unique=True)
    await db["reports"].create_index("year")

    # One meal per user, date and slot
    await db["meals"].create_index(
        [("user_id", ASCENDING), ("date", ASCENDING), ("meal_type", ASCENDING)],
        unique=True
    )
    await db["meals"].create_index([("user_id", ASCENDING), ("month", ASCENDING)])
    await db["meals"].create_index([("month", ASCENDING), ("locked", ASCENDING)])

    await db["deposits"].create_index([("user_id", ASCENDING), ("month", ASCENDING)])
    await db["deposits"].create_index([("month", ASCENDING), ("locked", ASCENDING)])

    await db["expenses"].create_index([("month", ASCENDING), ("locked", ASCENDING)])
    await db["expenses"].create_index([("category", ASCENDING), ("month", DESCENDING)])

    await db["users"].create_index("is_active")

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
