import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, Dict, Any, List
from datetime import datetime
from pymongo import ASCENDING, DESCENDING

from app.core import config
from app.core.clock import clock
from app.models.contest.audit import AuditAction, AuditEntry
from app.utils.store import store_call

logger = logging.getLogger(__name__)


class AuditService:
    """Service for audit trail logging"""

    def __init__(self, db: AsyncIOMotorDatabase, timeout: float = None):
        self.db = db
        self.audit_log = db.contest_audit_log
        self.timeout = timeout or config.STORE_TIMEOUT_SECONDS

    @staticmethod
    async def ensure_indexes(db: AsyncIOMotorDatabase):
        await db.contest_audit_log.create_index(
            [("contest_id", ASCENDING), ("timestamp", DESCENDING)]
        )

    async def log_action(
        self,
        contest_id: str,
        action: AuditAction,
        actor: str = "system",
        metadata: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None
    ) -> bool:
        """Log an audit trail entry (failures are reported, not raised)"""
        try:
            entry = AuditEntry(
                contest_id=contest_id,
                action=action,
                actor=actor,
                metadata=metadata,
                timestamp=timestamp or clock.now()
            )
            document = entry.model_dump()
            document["action"] = entry.action.value
            await store_call(
                self.audit_log.insert_one(document),
                "audit.log_action",
                self.timeout
            )
            return True

        except Exception as e:
            logger.warning("Error logging audit %s for %s: %s", action, contest_id, e)
            return False

    async def get_contest_history(
        self,
        contest_id: str,
        limit: int = 100
    ) -> List[Dict]:
        """Get audit history for a contest, newest first"""
        cursor = self.audit_log.find({"contest_id": contest_id}).sort("timestamp", -1).limit(limit)
        return await store_call(cursor.to_list(length=limit), "audit.history", self.timeout)

    async def on_participation(self, participation: dict):
        """Participation signal subscriber"""
        await self.log_action(
            contest_id=participation["contest_id"],
            action=AuditAction.PARTICIPATION_RECORDED,
            actor=participation["user_id"],
            timestamp=participation["participated_at"]
        )
