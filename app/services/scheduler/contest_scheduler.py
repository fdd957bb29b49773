"""
Weekly Contest Scheduler

Drives the contest lifecycle on the wall clock:
- Archive: ACTIVE -> CLOSED -> ARCHIVED once window_end has passed
- Activate: SCHEDULED -> ACTIVE once window_start is reached
- Draw: pick a random winner from the ledger once a contest has closed
- Ensure next: keep one SCHEDULED contest queued behind the active one

Every tick re-reads the store and decides from scratch. Each write is a
conditional update on (id, current status), so a tick that runs twice, or
on two replicas at once, applies each transition exactly once; the loser
gets PreconditionFailed and moves on.
"""
import logging
import random
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List, Dict, Any, Optional
from datetime import datetime, timedelta

from app.core import config
from app.core.clock import clock as system_clock
from app.core.errors import PreconditionFailed
from app.models.contest.weekly_contest import ContestStatus, ContestWinner, WeeklyContestInDB
from app.models.contest.audit import AuditAction
from app.services.contest.audit import AuditService
from app.services.contest.contest_store import ContestStore
from app.services.contest.participation_ledger import ParticipationLedger

logger = logging.getLogger(__name__)


class WeeklyContestScheduler:
    """
    Tick body for the weekly contest lifecycle.

    Jobs (all inside one tick):
    1. archive_expired
    2. activate_due
    3. draw_pending (winner of every closed contest, once)
    4. ensure_next_scheduled
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        clock=None,
        duration: Optional[timedelta] = None,
        timeout: float = None,
        rng: Optional[random.Random] = None
    ):
        self.db = db
        self.clock = clock or system_clock
        self.rng = rng or random.SystemRandom()
        self.duration = duration or timedelta(days=config.CONTEST_DURATION_DAYS)
        self.store = ContestStore(db, timeout=timeout)
        self.ledger = ParticipationLedger(db, timeout=timeout)
        self.audit_service = AuditService(db, timeout=timeout)

    async def tick(self) -> Dict[str, Any]:
        """
        One evaluation of the lifecycle.

        Store failures propagate to the caller; nothing is half-applied
        because every step is a single conditional write.
        """
        now = self.clock.now()
        results = {
            "archived": [],
            "activated": [],
            "created": [],
            "drawn": [],
            "run_at": now.isoformat()
        }

        results["archived"].extend(await self.archive_expired(now))

        activated = await self.activate_due(now)
        if activated is not None:
            results["activated"].append(self._summary(activated))
            # Engine was down for the whole window: close it right away
            if activated["window_end"] <= now:
                results["archived"].extend(await self.archive_expired(now))

        results["drawn"].extend(await self.draw_pending(now))

        created = await self.ensure_next_scheduled(now)
        if created is not None:
            results["created"].append(self._summary(created))

        return results

    # ==================== STEP 1: ARCHIVE ====================

    async def archive_expired(self, now: datetime) -> List[Dict[str, Any]]:
        """Close and archive every ACTIVE contest whose window has ended."""
        archived = []

        # CLOSED leftovers from a tick that failed between the two writes
        for contest in await self.store.list_by_status(ContestStatus.CLOSED):
            done = await self._archive(contest, now)
            if done is not None:
                archived.append(self._summary(done))

        for contest in await self.store.list_by_status(ContestStatus.ACTIVE):
            if contest["window_end"] > now:
                continue
            closed = await self._close(contest, now)
            if closed is None:
                continue
            done = await self._archive(closed, now)
            if done is not None:
                archived.append(self._summary(done))

        return archived

    async def _close(self, contest: dict, now: datetime) -> Optional[Dict]:
        contest_id = str(contest["_id"])
        try:
            closed = await self.store.update_status(
                contest_id,
                ContestStatus.ACTIVE,
                ContestStatus.CLOSED,
                now=now,
                closed_at=now
            )
        except PreconditionFailed as e:
            logger.debug("Close skipped: %s", e, extra={"contest_id": contest_id})
            return None

        # Freeze the tally from the ledger, which is authoritative. Late
        # increments only match ACTIVE contests, so this value is final.
        participant_count = await self.ledger.count(contest_id)
        await self.store.freeze_participant_count(contest_id, participant_count)
        closed["current_participants"] = participant_count

        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.CONTEST_CLOSED,
            metadata={
                "trigger": "window_end_reached",
                "window_end": contest["window_end"].isoformat(),
                "participant_count": participant_count
            },
            timestamp=now
        )
        logger.info(
            "Contest closed: %s (%s) with %d participants",
            contest_id, contest.get("title", "Unknown"), participant_count,
            extra={"contest_id": contest_id, "status": ContestStatus.CLOSED.value}
        )
        return closed

    async def _archive(self, contest: dict, now: datetime) -> Optional[Dict]:
        contest_id = str(contest["_id"])
        try:
            archived = await self.store.update_status(
                contest_id,
                ContestStatus.CLOSED,
                ContestStatus.ARCHIVED,
                now=now,
                archived_at=now
            )
        except PreconditionFailed as e:
            logger.debug("Archive skipped: %s", e, extra={"contest_id": contest_id})
            return None

        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.CONTEST_ARCHIVED,
            timestamp=now
        )
        logger.info(
            "Contest archived: %s", contest_id,
            extra={"contest_id": contest_id, "status": ContestStatus.ARCHIVED.value}
        )
        return archived

    # ==================== STEP 2: ACTIVATE ====================

    async def activate_due(self, now: datetime) -> Optional[Dict]:
        """Start the next SCHEDULED contest if its window has opened and nothing is ACTIVE."""
        if await self.store.get_active() is not None:
            return None

        contest = await self.store.get_scheduled()
        if contest is None or contest["window_start"] > now:
            return None

        contest_id = str(contest["_id"])
        try:
            activated = await self.store.update_status(
                contest_id,
                ContestStatus.SCHEDULED,
                ContestStatus.ACTIVE,
                now=now
            )
        except PreconditionFailed as e:
            logger.debug("Activation skipped: %s", e, extra={"contest_id": contest_id})
            return None

        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.CONTEST_ACTIVATED,
            metadata={
                "scheduled_start": contest["window_start"].isoformat(),
                "actual_start": now.isoformat()
            },
            timestamp=now
        )
        logger.info(
            "Contest activated: %s (%s)", contest_id, contest.get("title", "Unknown"),
            extra={"contest_id": contest_id, "status": ContestStatus.ACTIVE.value}
        )
        return activated

    # ==================== STEP 3: DRAW ====================

    async def draw_pending(self, now: datetime) -> List[Dict[str, Any]]:
        """Draw the winner of every closed contest that has not been drawn."""
        drawn = []
        for contest in await self.store.list_undrawn():
            done = await self.draw_winner(contest, now)
            if done is not None:
                drawn.append(self._summary(done))
        return drawn

    async def draw_winner(self, contest: dict, now: datetime) -> Optional[Dict]:
        """
        Pick one participant at random from the ledger and record it.

        The write is conditional on the contest not being drawn yet, so a
        concurrent or repeated draw keeps the first result. A contest
        without participants is marked drawn with no winner.
        """
        contest_id = str(contest["_id"])
        picked = await self.ledger.pick_random(contest_id, self.rng)
        winner = None
        if picked is not None:
            winner = ContestWinner(
                user_id=picked["user_id"],
                prize=contest.get("prize") or config.CONTEST_PRIZE,
                selected_at=now
            ).model_dump()

        try:
            drawn = await self.store.record_draw(contest_id, winner, now)
        except PreconditionFailed as e:
            logger.debug("Draw skipped: %s", e, extra={"contest_id": contest_id})
            return None

        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.CONTEST_DRAWN,
            metadata={
                "winner": winner["user_id"] if winner else None,
                "prize": winner["prize"] if winner else None
            },
            timestamp=now
        )
        if winner:
            logger.info(
                "Winner drawn for %s: user %s", contest_id, winner["user_id"],
                extra={"contest_id": contest_id, "user_id": winner["user_id"]}
            )
        else:
            logger.info("No participants to draw for %s", contest_id, extra={"contest_id": contest_id})
        return drawn

    # ==================== STEP 4: ENSURE NEXT ====================

    def next_window_start(self, latest: Optional[dict], now: datetime) -> datetime:
        """
        Start of the next window: end of the last known window, or now at
        bootstrap. A window that would already be over is moved forward by
        whole durations so it contains ``now``.
        """
        if latest is None:
            return now

        start = latest["window_end"]
        if start + self.duration <= now:
            start += self.duration * ((now - start) // self.duration)
        return start

    def build_contest(self, window_start: datetime, now: datetime) -> WeeklyContestInDB:
        year, week, _ = window_start.isocalendar()
        return WeeklyContestInDB(
            title=config.CONTEST_TITLE_TEMPLATE.format(week=week, year=year),
            description=config.CONTEST_DESCRIPTION,
            week_number=week,
            year=year,
            window_start=window_start,
            window_end=window_start + self.duration,
            status=ContestStatus.SCHEDULED,
            max_participants=config.CONTEST_MAX_PARTICIPANTS or None,
            prize=config.CONTEST_PRIZE,
            auto_draw_enabled=config.CONTEST_AUTO_DRAW,
            created_at=now,
            updated_at=now
        )

    async def ensure_next_scheduled(self, now: datetime) -> Optional[Dict]:
        """Create the next SCHEDULED contest when none is queued."""
        if await self.store.get_scheduled() is not None:
            return None

        latest = await self.store.get_latest()
        window_start = self.next_window_start(latest, now)

        try:
            created = await self.store.create(self.build_contest(window_start, now))
        except PreconditionFailed:
            logger.debug("Contest for window %s already created elsewhere", window_start.isoformat())
            return None

        contest_id = str(created["_id"])
        await self.audit_service.log_action(
            contest_id=contest_id,
            action=AuditAction.CONTEST_CREATED,
            metadata={
                "window_start": created["window_start"].isoformat(),
                "window_end": created["window_end"].isoformat(),
                "bootstrap": latest is None
            },
            timestamp=now
        )
        logger.info(
            "Contest scheduled: %s (%s) window %s -> %s",
            contest_id, created["title"],
            created["window_start"].isoformat(), created["window_end"].isoformat(),
            extra={"contest_id": contest_id, "status": ContestStatus.SCHEDULED.value}
        )
        return created

    @staticmethod
    def _summary(contest: dict) -> Dict[str, Any]:
        return {
            "contest_id": str(contest["_id"]),
            "title": contest.get("title", "Unknown"),
            "status": contest["status"],
            "participants": contest.get("current_participants", 0),
            "winner": (contest.get("winner") or {}).get("user_id")
        }
