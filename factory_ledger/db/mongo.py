import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from factory_ledger.core.config import settings
from factory_ledger.repositories.transaction_repo import TransactionRepository

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    timeout_ms = int(settings.STORE_TIMEOUT_SECONDS * 1000)
    mongodb.client = AsyncIOMotorClient(
        settings.MONGODB_URL,
        tz_aware=True,
        serverSelectionTimeoutMS=timeout_ms,
        socketTimeoutMS=timeout_ms,
    )
    mongodb.db = mongodb.client[settings.DATABASE_NAME]

    await create_indexes()
    logger.info("Connected to MongoDB", extra={"database": settings.DATABASE_NAME})

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
        mongodb.client = None
        mongodb.db = None
        logger.info("Disconnected from MongoDB")

async def create_indexes():
    """Create database indexes."""
    await TransactionRepository(mongodb.db).create_indexes()

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
