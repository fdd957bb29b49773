from fastapi import APIRouter, Depends
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.errors import WeeklyContestError
from app.core.scheduler import get_scheduler_status
from app.routes.auth.dependencies import get_current_user_id, get_database, get_clock
from app.services.scheduler.contest_scheduler import WeeklyContestScheduler
from app.utils.response import success_response, unauthorized_response, contest_error_response

router = APIRouter(prefix="/scheduler", tags=["Scheduler"])


@router.get("/status")
async def scheduler_status(db: AsyncIOMotorDatabase = Depends(get_database)):
    """
    Weekly contest scheduler status (for monitoring).

    Shows whether the engine runs, last/next tick and the current contest.
    """
    status = await get_scheduler_status(db)
    return success_response(message="Scheduler status retrieved", data=status)


@router.post("/run")
async def run_scheduler_manually(
    user_id: Optional[str] = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_database),
    clock=Depends(get_clock)
):
    """
    Run one lifecycle tick now (authenticated; operations/testing).

    Safe to call at any time: the tick is idempotent.
    """
    if not user_id:
        return unauthorized_response("Authentication required")

    try:
        results = await WeeklyContestScheduler(db, clock=clock).tick()
    except WeeklyContestError as e:
        return contest_error_response(e)

    return success_response(message="Scheduler tick executed", data=results)
