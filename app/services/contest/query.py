from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, List, Dict, Tuple

from app.core.clock import clock as system_clock
from app.models.contest.weekly_contest import ContestStatus, ContestStats
from app.services.contest.contest_store import ContestStore
from app.services.contest.participation_ledger import ParticipationLedger


class ContestQueryService:
    """Read-only projections over the contest store and ledger"""

    def __init__(self, db: AsyncIOMotorDatabase, clock=None, timeout: float = None):
        self.db = db
        self.clock = clock or system_clock
        self.store = ContestStore(db, timeout=timeout)
        self.ledger = ParticipationLedger(db, timeout=timeout)

    async def get_current(self) -> Optional[Dict]:
        """
        The active contest, or the scheduled one if none is active yet.

        Closed and archived contests are never current.
        """
        contest = await self.store.get_active()
        if contest is None:
            contest = await self.store.get_scheduled()
        return contest

    async def get_stats(self) -> ContestStats:
        """
        Aggregate counts.

        Each number is its own read, there is no snapshot across the two
        collections: a participation landing between the reads can show up
        in totalParticipants but not yet in currentParticipants (or the
        reverse). The ledger count is the authoritative one.
        """
        as_of = self.clock.now()
        total_contests = await self.store.count()
        active_contests = await self.store.count(ContestStatus.ACTIVE)
        archived_contests = await self.store.count(ContestStatus.ARCHIVED)
        total_participants = await self.ledger.count()

        current = await self.get_current()
        current_participants = current.get("current_participants", 0) if current else 0

        return ContestStats(
            totalContests=total_contests,
            activeContests=active_contests,
            archivedContests=archived_contests,
            totalParticipants=total_participants,
            currentParticipants=current_participants,
            asOf=as_of
        )

    async def get_history(self, offset: int = 0, limit: int = 10) -> Tuple[List[Dict], int]:
        return await self.store.list_history(offset=offset, limit=limit)
