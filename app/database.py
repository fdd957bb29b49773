import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient

from app.core import config

logger = logging.getLogger(__name__)


class Database:
    client: Optional[AsyncIOMotorClient] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB"""
        timeout_ms = int(config.STORE_TIMEOUT_SECONDS * 1000)
        cls.client = AsyncIOMotorClient(
            config.MONGODB_URL,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
        )
        logger.info("Connected to MongoDB (%s)", config.DATABASE_NAME)

        # Create indexes
        await cls.create_indexes()

    @classmethod
    async def create_indexes(cls):
        """
        Create database indexes.

        The participations unique index must exist before any participation
        is written, so a failure here aborts startup.
        """
        from app.services.contest.contest_store import ContestStore
        from app.services.contest.participation_ledger import ParticipationLedger
        from app.services.contest.audit import AuditService

        db = cls.get_db()

        await ParticipationLedger.ensure_indexes(db)
        logger.info("Created unique index on participations(contest_id, user_id)")

        await ContestStore.ensure_indexes(db)
        logger.info("Created indexes on contests")

        # Audit trail is best-effort
        try:
            await AuditService.ensure_indexes(db)
            logger.info("Created indexes on contest_audit_log")
        except Exception as e:
            logger.warning("Indexes on contest_audit_log may already exist: %s", e)

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection"""
        if cls.client:
            cls.client.close()
            cls.client = None
            logger.info("Disconnected from MongoDB")

    @classmethod
    def get_db(cls):
        """Get database instance"""
        if cls.client is None:
            return None
        return cls.client[config.DATABASE_NAME]


async def get_database():
    """Dependency to get database"""
    return Database.get_db()
