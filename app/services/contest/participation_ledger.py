"""
Participation Ledger

Owns the ``participations`` collection. The unique compound index on
(contest_id, user_id) is what guarantees one entry per user per contest:
recording is a single insert, and a duplicate key is the only signal that
the user already took part. There is no read-before-write.
"""
import random
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, Dict
from datetime import datetime
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from app.core import config
from app.core.errors import AlreadyParticipated
from app.models.contest.participation import ParticipationInDB
from app.utils.store import store_call

UNIQUE_INDEX_NAME = "contest_user_unique"


class ParticipationLedger:
    """Immutable, uniquely keyed record of participations"""

    def __init__(self, db: AsyncIOMotorDatabase, timeout: float = None):
        self.db = db
        self.participations = db.participations
        self.timeout = timeout or config.STORE_TIMEOUT_SECONDS

    @staticmethod
    async def ensure_indexes(db: AsyncIOMotorDatabase):
        """Must run before any participation is written."""
        await db.participations.create_index(
            [("contest_id", ASCENDING), ("user_id", ASCENDING)],
            unique=True,
            name=UNIQUE_INDEX_NAME
        )
        await db.participations.create_index([("user_id", ASCENDING), ("participated_at", -1)])

    async def _call(self, awaitable, operation: str):
        return await store_call(awaitable, f"participations.{operation}", self.timeout)

    async def has_participated(self, contest_id: str, user_id: str) -> bool:
        existing = await self._call(
            self.participations.find_one(
                {"contest_id": contest_id, "user_id": user_id},
                {"_id": 1}
            ),
            "has_participated"
        )
        return existing is not None

    async def get(self, contest_id: str, user_id: str) -> Optional[Dict]:
        return await self._call(
            self.participations.find_one({"contest_id": contest_id, "user_id": user_id}),
            "get"
        )

    async def record_participation(
        self,
        contest_id: str,
        user_id: str,
        participated_at: datetime
    ) -> Dict:
        """
        Insert the (contest_id, user_id) entry.

        Raises AlreadyParticipated when the unique index rejects it.
        """
        document = ParticipationInDB(
            contest_id=contest_id,
            user_id=user_id,
            participated_at=participated_at
        ).model_dump()

        try:
            result = await self._call(self.participations.insert_one(document), "record")
        except DuplicateKeyError:
            raise AlreadyParticipated(contest_id, user_id)

        document["_id"] = result.inserted_id
        return document

    async def count(self, contest_id: Optional[str] = None) -> int:
        query = {"contest_id": contest_id} if contest_id else {}
        return await self._call(self.participations.count_documents(query), "count")

    async def pick_random(self, contest_id: str, rng: random.Random) -> Optional[Dict]:
        """
        One entry of ``contest_id`` chosen uniformly by ``rng``.

        Entries are walked in a stable order (participated_at, _id) so the
        pick only depends on the index ``rng`` returns.
        """
        total = await self.count(contest_id)
        if total == 0:
            return None

        index = rng.randrange(total)
        cursor = (
            self.participations.find({"contest_id": contest_id})
            .sort([("participated_at", ASCENDING), ("_id", ASCENDING)])
            .skip(index)
            .limit(1)
        )
        picked = await self._call(cursor.to_list(length=1), "pick_random")
        return picked[0] if picked else None
