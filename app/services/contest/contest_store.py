"""
Contest Store

Owns the ``contests`` collection. Every status change is a conditional
update keyed by (id, current status), so a transition either applies exactly
once or reports PreconditionFailed and changes nothing.
"""
import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, List, Dict, Tuple
from datetime import datetime
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core import config
from app.core.errors import PreconditionFailed
from app.models.contest.weekly_contest import ContestStatus, HISTORY_STATUSES, WeeklyContestInDB
from app.utils.store import store_call

logger = logging.getLogger(__name__)


def _to_object_id(contest_id) -> Optional[ObjectId]:
    if isinstance(contest_id, ObjectId):
        return contest_id
    try:
        return ObjectId(contest_id)
    except (InvalidId, TypeError):
        return None


class ContestStore:
    """Persistence for weekly contest instances"""

    def __init__(self, db: AsyncIOMotorDatabase, timeout: float = None):
        self.db = db
        self.contests = db.contests
        self.timeout = timeout or config.STORE_TIMEOUT_SECONDS

    @staticmethod
    async def ensure_indexes(db: AsyncIOMotorDatabase):
        """
        Unique window_start: two schedulers racing to create the same next
        contest collide here instead of producing overlapping windows.
        """
        await db.contests.create_index([("window_start", ASCENDING)], unique=True)
        await db.contests.create_index([("status", ASCENDING), ("window_start", ASCENDING)])

    async def _call(self, awaitable, operation: str):
        return await store_call(awaitable, f"contests.{operation}", self.timeout)

    # ==================== READS ====================

    async def get_active(self) -> Optional[Dict]:
        """The contest with status ACTIVE, if any"""
        return await self._call(
            self.contests.find_one(
                {"status": ContestStatus.ACTIVE.value},
                sort=[("window_start", ASCENDING)]
            ),
            "get_active"
        )

    async def get_scheduled(self) -> Optional[Dict]:
        """Earliest SCHEDULED contest"""
        return await self._call(
            self.contests.find_one(
                {"status": ContestStatus.SCHEDULED.value},
                sort=[("window_start", ASCENDING)]
            ),
            "get_scheduled"
        )

    async def get_latest(self) -> Optional[Dict]:
        """Contest with the furthest window_end, any status"""
        return await self._call(
            self.contests.find_one({}, sort=[("window_end", DESCENDING)]),
            "get_latest"
        )

    async def get_by_id(self, contest_id: str) -> Optional[Dict]:
        oid = _to_object_id(contest_id)
        if oid is None:
            return None
        return await self._call(self.contests.find_one({"_id": oid}), "get_by_id")

    async def list_by_status(self, status: ContestStatus, limit: int = 100) -> List[Dict]:
        cursor = self.contests.find({"status": status.value}).sort("window_start", ASCENDING).limit(limit)
        return await self._call(cursor.to_list(length=limit), "list_by_status")

    async def list_history(self, offset: int = 0, limit: int = 10) -> Tuple[List[Dict], int]:
        """
        Closed and archived contests, newest window first.

        Returns (page, total matching).
        """
        query = {"status": {"$in": [s.value for s in HISTORY_STATUSES]}}
        cursor = self.contests.find(query).sort("window_start", DESCENDING).skip(offset).limit(limit)
        items = await self._call(cursor.to_list(length=limit), "list_history")
        total = await self._call(self.contests.count_documents(query), "count_history")
        return items, total

    async def count(self, status: Optional[ContestStatus] = None) -> int:
        query = {"status": status.value} if status else {}
        return await self._call(self.contests.count_documents(query), "count")

    # ==================== WRITES ====================

    async def create(self, contest: WeeklyContestInDB) -> Dict:
        """
        Insert a new contest.

        Raises PreconditionFailed if a contest with the same window_start
        already exists (another scheduler got there first).
        """
        document = contest.model_dump()
        document["status"] = contest.status.value
        try:
            result = await self._call(self.contests.insert_one(document), "create")
        except DuplicateKeyError:
            raise PreconditionFailed(None, "absent", contest.status.value)
        document["_id"] = result.inserted_id
        return document

    async def update_status(
        self,
        contest_id: str,
        from_status: ContestStatus,
        to_status: ContestStatus,
        now: Optional[datetime] = None,
        **fields
    ) -> Dict:
        """
        Compare-and-swap the status.

        Only applies if the stored status still equals ``from_status``;
        otherwise raises PreconditionFailed and leaves the document untouched.
        Returns the updated document.
        """
        oid = _to_object_id(contest_id)
        update = dict(fields)
        update["status"] = to_status.value
        if now is not None:
            update["updated_at"] = now

        updated = None
        if oid is not None:
            updated = await self._call(
                self.contests.find_one_and_update(
                    {"_id": oid, "status": from_status.value},
                    {"$set": update},
                    return_document=ReturnDocument.AFTER
                ),
                "update_status"
            )
        if updated is None:
            raise PreconditionFailed(str(contest_id), from_status.value, to_status.value)
        return updated

    async def increment_participants(
        self,
        contest_id: str,
        max_participants: Optional[int] = None
    ) -> bool:
        """
        Atomic +1 on the cached participant counter.

        Only matches while the contest is ACTIVE, so an increment landing
        after the close never touches the frozen tally. With
        ``max_participants`` the filter also requires a free slot, which
        makes the capacity check and the increment one write.
        Returns False when nothing matched.
        """
        oid = _to_object_id(contest_id)
        if oid is None:
            return False
        query = {"_id": oid, "status": ContestStatus.ACTIVE.value}
        if max_participants:
            query["current_participants"] = {"$lt": max_participants}
        result = await self._call(
            self.contests.update_one(query, {"$inc": {"current_participants": 1}}),
            "increment_participants"
        )
        return result.matched_count == 1

    async def release_participant(self, contest_id: str) -> bool:
        """Give back a slot taken by increment_participants (ACTIVE only)"""
        oid = _to_object_id(contest_id)
        if oid is None:
            return False
        result = await self._call(
            self.contests.update_one(
                {
                    "_id": oid,
                    "status": ContestStatus.ACTIVE.value,
                    "current_participants": {"$gt": 0}
                },
                {"$inc": {"current_participants": -1}}
            ),
            "release_participant"
        )
        return result.matched_count == 1

    async def freeze_participant_count(self, contest_id: str, count: int) -> bool:
        """
        Overwrite the counter of a CLOSED contest with the ledger count.

        Runs once, right after the ACTIVE -> CLOSED swap. From then on
        increments no longer match, so the tally stays equal to the ledger.
        """
        oid = _to_object_id(contest_id)
        if oid is None:
            return False
        result = await self._call(
            self.contests.update_one(
                {"_id": oid, "status": ContestStatus.CLOSED.value},
                {"$set": {"current_participants": count}}
            ),
            "freeze_participant_count"
        )
        return result.matched_count == 1

    # ==================== DRAW ====================

    async def list_undrawn(self, limit: int = 100) -> List[Dict]:
        """Closed/archived contests with auto draw on and no draw yet"""
        query = {
            "status": {"$in": [s.value for s in HISTORY_STATUSES]},
            "auto_draw_enabled": {"$ne": False},
            "draw_completed": {"$ne": True}
        }
        cursor = self.contests.find(query).sort("window_start", ASCENDING).limit(limit)
        return await self._call(cursor.to_list(length=limit), "list_undrawn")

    async def record_draw(
        self,
        contest_id: str,
        winner: Optional[Dict],
        now: datetime
    ) -> Dict:
        """
        Store the draw result, once.

        Conditional on ``draw_completed`` still being unset; a second draw
        for the same contest raises PreconditionFailed and changes nothing.
        ``winner`` is None when nobody took part.
        """
        oid = _to_object_id(contest_id)
        updated = None
        if oid is not None:
            updated = await self._call(
                self.contests.find_one_and_update(
                    {
                        "_id": oid,
                        "status": {"$in": [s.value for s in HISTORY_STATUSES]},
                        "draw_completed": {"$ne": True}
                    },
                    {"$set": {
                        "draw_completed": True,
                        "draw_completed_at": now,
                        "winner": winner,
                        "updated_at": now
                    }},
                    return_document=ReturnDocument.AFTER
                ),
                "record_draw"
            )
        if updated is None:
            raise PreconditionFailed(str(contest_id), "undrawn", "drawn")
        return updated
