"""
APScheduler Setup for Background Jobs

Runs the weekly contest lifecycle tick on a fixed interval
(SCHEDULER_TICK_SECONDS, one minute by default) and once right at startup.

Note: Jobs run with database connection from app context. A failed tick is
logged and simply retried at the next interval.
"""
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime, timezone

from app.core import config
from app.core.clock import clock
from app.core.errors import WeeklyContestError

logger = logging.getLogger(__name__)

TICK_JOB_ID = "weekly_contest_tick"

# Global scheduler instance
scheduler = AsyncIOScheduler()

# Job status tracking
job_status = {
    "last_tick": None,
    "last_success": None,
    "last_result": None,
    "last_error": None,
    "ticks": 0,
    "failures": 0
}


async def run_weekly_contest_tick():
    """Job: evaluate the weekly contest lifecycle."""
    from app.database import Database
    from app.services.scheduler.contest_scheduler import WeeklyContestScheduler

    job_status["last_tick"] = clock.now()
    try:
        db = Database.get_db()
        if db is None:
            logger.warning("Database not connected, skipping tick", extra={"job": TICK_JOB_ID})
            return

        result = await WeeklyContestScheduler(db, clock=clock).tick()

        job_status["ticks"] += 1
        job_status["last_success"] = job_status["last_tick"]
        job_status["last_result"] = result
        job_status["last_error"] = None

        if result["archived"] or result["activated"] or result["drawn"] or result["created"]:
            logger.info(
                "Tick: %d archived, %d activated, %d drawn, %d created",
                len(result["archived"]), len(result["activated"]),
                len(result["drawn"]), len(result["created"]),
                extra={"job": TICK_JOB_ID}
            )

    except Exception as e:
        job_status["failures"] += 1
        job_status["last_error"] = str(e)
        logger.exception("Weekly contest tick failed: %s", e, extra={"job": TICK_JOB_ID})


def setup_scheduler(interval_seconds: int = None, run_immediately: bool = True):
    """
    Configure the lifecycle job.

    max_instances=1 keeps ticks strictly sequential; coalesce=True folds
    missed runs into one.
    """
    # Clear any existing jobs
    scheduler.remove_all_jobs()

    job_kwargs = {}
    if run_immediately:
        job_kwargs["next_run_time"] = datetime.now(timezone.utc)

    scheduler.add_job(
        run_weekly_contest_tick,
        IntervalTrigger(seconds=interval_seconds or config.SCHEDULER_TICK_SECONDS),
        id=TICK_JOB_ID,
        name="Weekly contest lifecycle tick",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        **job_kwargs
    )

    logger.info(
        "Weekly contest scheduler configured (every %ss)",
        interval_seconds or config.SCHEDULER_TICK_SECONDS
    )


def start_scheduler():
    """Start the scheduler if not already running."""
    if not scheduler.running:
        scheduler.start()
        logger.info("Background scheduler started")


def stop_scheduler():
    """Stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")


def _iso(value):
    """Naive-UTC ISO string; APScheduler hands back aware local times."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


async def get_scheduler_status(db=None) -> dict:
    """Current scheduler status for monitoring."""
    from app.services.contest.query import ContestQueryService

    job = scheduler.get_job(TICK_JOB_ID)
    status = {
        "running": scheduler.running,
        "lastTick": _iso(job_status["last_tick"]),
        "lastSuccess": _iso(job_status["last_success"]),
        "nextTick": _iso(getattr(job, "next_run_time", None)) if job else None,
        "tickIntervalSeconds": config.SCHEDULER_TICK_SECONDS,
        "currentContestId": None,
        "currentContestStatus": None,
        "ticks": job_status["ticks"],
        "failures": job_status["failures"],
        "lastError": job_status["last_error"],
        "storeAvailable": None
    }

    if db is not None:
        try:
            contest = await ContestQueryService(db).get_current()
            status["storeAvailable"] = True
        except WeeklyContestError as e:
            logger.warning("Scheduler status without current contest: %s", e)
            status["storeAvailable"] = False
            contest = None
        if contest:
            status["currentContestId"] = str(contest["_id"])
            status["currentContestStatus"] = contest["status"]

    return status
