import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, Dict

from app.core.clock import clock as system_clock
from app.core.errors import (
    AlreadyParticipated,
    ContestFull,
    ContestNotActive,
    ContestNotFound,
    DuplicateParticipation,
    WeeklyContestError,
)
from app.models.contest.weekly_contest import ContestStatus
from app.models.contest.participation import ParticipationStatus
from app.services.contest.contest_store import ContestStore
from app.services.contest.participation_ledger import ParticipationLedger
from app.services.contest.events import ParticipationEvents, participation_events

logger = logging.getLogger(__name__)


class ParticipationService:
    """Validates and commits participation requests"""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock=None,
        events: Optional[ParticipationEvents] = None,
        timeout: float = None
    ):
        self.db = db
        self.clock = clock or system_clock
        self.events = events if events is not None else participation_events
        self.store = ContestStore(db, timeout=timeout)
        self.ledger = ParticipationLedger(db, timeout=timeout)

    async def resolve_target(self, contest_id: Optional[str] = None) -> str:
        """
        Contest to participate in: the given one, else the current one
        (active, or scheduled when nothing is active yet).
        """
        if contest_id:
            return contest_id

        contest = await self.store.get_active()
        if contest is None:
            contest = await self.store.get_scheduled()
        if contest is None:
            raise ContestNotFound()
        return str(contest["_id"])

    async def participate(self, contest_id: str, user_id: str) -> Dict:
        """
        Record ``user_id`` in ``contest_id``.

        - Contest must exist (ContestNotFound)
        - Contest must be ACTIVE and now inside [window_start, window_end)
          (ContestNotActive); the window is checked against the clock, not
          only the stored status, so an expired contest is refused even
          before the scheduler closes it
        - One entry per user (DuplicateParticipation), enforced by the
          ledger's unique index
        - A contest with max_participants refuses entries once full
          (ContestFull)
        """
        contest = await self.store.get_by_id(contest_id)
        if contest is None:
            raise ContestNotFound(contest_id)

        contest_id = str(contest["_id"])
        now = self.clock.now()
        status = contest["status"]

        if status != ContestStatus.ACTIVE.value:
            raise ContestNotActive(contest_id, status)
        if not (contest["window_start"] <= now < contest["window_end"]):
            reason = "ended" if now >= contest["window_end"] else "not_started"
            raise ContestNotActive(contest_id, status, reason)

        max_participants = contest.get("max_participants")
        if max_participants:
            participation = await self._record_with_capacity(contest_id, user_id, now, max_participants)
        else:
            participation = await self._record(contest_id, user_id, now)

        logger.info(
            "Participation recorded: user %s in contest %s", user_id, contest_id,
            extra={"contest_id": contest_id, "user_id": user_id}
        )
        self.events.emit(participation)

        return participation

    async def _record(self, contest_id: str, user_id: str, now) -> Dict:
        try:
            participation = await self.ledger.record_participation(contest_id, user_id, now)
        except AlreadyParticipated:
            raise DuplicateParticipation(contest_id, user_id)

        # The ledger row is committed; the counter is only a read-path cache.
        # If the contest closed in between, the increment matches nothing and
        # the tally frozen from the ledger stands.
        try:
            if not await self.store.increment_participants(contest_id):
                logger.debug(
                    "Counter of %s not incremented, contest no longer active", contest_id,
                    extra={"contest_id": contest_id, "user_id": user_id}
                )
        except WeeklyContestError as e:
            logger.warning(
                "Participant counter not incremented for %s: %s", contest_id, e,
                extra={"contest_id": contest_id, "user_id": user_id}
            )
        return participation

    async def _record_with_capacity(
        self,
        contest_id: str,
        user_id: str,
        now,
        max_participants: int
    ) -> Dict:
        """
        Capped contest: take a slot first, then write the ledger entry.

        The slot is a conditional increment (active and below the cap), so
        concurrent requests can never push the counter past
        ``max_participants``. A slot whose ledger write fails is given back.
        """
        if not await self.store.increment_participants(contest_id, max_participants):
            if await self.ledger.has_participated(contest_id, user_id):
                raise DuplicateParticipation(contest_id, user_id)
            latest = await self.store.get_by_id(contest_id)
            if latest is None or latest["status"] != ContestStatus.ACTIVE.value:
                raise ContestNotActive(contest_id, latest["status"] if latest else "missing", "ended")
            raise ContestFull(contest_id, max_participants)

        try:
            return await self.ledger.record_participation(contest_id, user_id, now)
        except AlreadyParticipated:
            await self._release_slot(contest_id)
            raise DuplicateParticipation(contest_id, user_id)
        except WeeklyContestError:
            await self._release_slot(contest_id)
            raise

    async def _release_slot(self, contest_id: str):
        try:
            await self.store.release_participant(contest_id)
        except WeeklyContestError as e:
            logger.warning(
                "Slot of %s not released: %s", contest_id, e,
                extra={"contest_id": contest_id}
            )

    async def get_participation_status(self, user_id: str) -> ParticipationStatus:
        """Whether ``user_id`` takes part in the current contest"""
        contest = await self.store.get_active()
        if contest is None:
            contest = await self.store.get_scheduled()
        if contest is None:
            return ParticipationStatus(isParticipating=False, reason="No weekly contest available")

        contest_id = str(contest["_id"])
        participation = await self.ledger.get(contest_id, user_id)

        return ParticipationStatus(
            isParticipating=participation is not None,
            contestId=contest_id,
            contestTitle=contest.get("title"),
            participatedAt=participation["participated_at"] if participation else None
        )
