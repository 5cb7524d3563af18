import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from clubfee.core.config import settings

logger = logging.getLogger(__name__)


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
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
        mongodb.client = None
        mongodb.db = None
        logger.info("Disconnected from MongoDB")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    # One settlement per meeting
    await db["settlements"].create_index("meeting_id", unique=True)
    await db["settlements"].create_index("status")

    await db["members"].create_index("id", unique=True)
    await db["members"].create_index("status")
