from fastapi import APIRouter, Depends, Query
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.errors import WeeklyContestError
from app.models.contest.weekly_contest import WeeklyContestResponse
from app.models.contest.participation import ParticipationRequest, ParticipationResponse
from app.routes.auth.dependencies import get_current_user_id, get_database, get_clock
from app.services.contest.participation import ParticipationService
from app.services.contest.query import ContestQueryService
from app.services.scheduler.contest_scheduler import WeeklyContestScheduler
from app.utils.response import success_response, error_response, unauthorized_response, contest_error_response

router = APIRouter(prefix="/contests/weekly", tags=["Weekly Contest"])


@router.get("/current")
async def get_current_weekly_contest(
    db: AsyncIOMotorDatabase = Depends(get_database),
    clock=Depends(get_clock)
):
    """
    Current weekly contest.

    The active contest, or the scheduled one before the first activation.
    """
    try:
        contest = await ContestQueryService(db, clock=clock).get_current()
    except WeeklyContestError as e:
        return contest_error_response(e)

    if contest is None:
        return error_response(
            message="No weekly contest available",
            status_code=404,
            kind="CONTEST_NOT_FOUND"
        )

    return success_response(
        message="Current weekly contest retrieved",
        data=WeeklyContestResponse.from_document(contest)
    )


@router.get("/stats")
async def get_weekly_contest_stats(
    db: AsyncIOMotorDatabase = Depends(get_database),
    clock=Depends(get_clock)
):
    """
    Aggregate statistics.

    totalParticipants comes from the participation ledger and
    currentParticipants from the current contest's counter; they are read
    separately and may briefly disagree.
    """
    try:
        stats = await ContestQueryService(db, clock=clock).get_stats()
    except WeeklyContestError as e:
        return contest_error_response(e)

    return success_response(message="Weekly contest stats retrieved", data=stats)


@router.get("/history")
async def get_weekly_contest_history(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncIOMotorDatabase = Depends(get_database),
    clock=Depends(get_clock)
):
    """Closed and archived contests, newest first."""
    try:
        contests, total = await ContestQueryService(db, clock=clock).get_history(offset=offset, limit=limit)
    except WeeklyContestError as e:
        return contest_error_response(e)

    return success_response(
        message="Weekly contest history retrieved",
        data={
            "contests": [WeeklyContestResponse.from_document(c) for c in contests],
            "pagination": {
                "offset": offset,
                "limit": limit,
                "total": total,
                "has_more": offset + len(contests) < total
            }
        }
    )


@router.post("/participate")
async def participate_in_weekly_contest(
    payload: Optional[ParticipationRequest] = None,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_database),
    clock=Depends(get_clock)
):
    """
    Participate in the weekly contest (authentication required).

    - One participation per user per contest (409 on repeat)
    - Only while the contest is active and inside its window (422)
    - Targets the current contest unless contestId is given
    """
    if not user_id:
        return unauthorized_response("Authentication required to participate")

    service = ParticipationService(db, clock=clock)
    try:
        contest_id = await service.resolve_target(payload.contestId if payload else None)
        participation = await service.participate(contest_id, user_id)
    except WeeklyContestError as e:
        return contest_error_response(e)

    return success_response(
        message="Participation recorded",
        data=ParticipationResponse.from_document(participation),
        status_code=201
    )


@router.get("/participation")
async def check_weekly_contest_participation(
    user_id: Optional[str] = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_database),
    clock=Depends(get_clock)
):
    """Whether the caller participates in the current contest."""
    if not user_id:
        return unauthorized_response("Authentication required")

    try:
        status = await ParticipationService(db, clock=clock).get_participation_status(user_id)
    except WeeklyContestError as e:
        return contest_error_response(e)

    return success_response(message="Participation status retrieved", data=status)


@router.post("/draw")
async def draw_weekly_contest_winners(
    user_id: Optional[str] = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_database),
    clock=Depends(get_clock)
):
    """
    Run the winner draw now (authentication required).

    Draws every closed contest that has not been drawn yet; the scheduler
    does the same on each tick, so this is safe to call at any time.
    """
    if not user_id:
        return unauthorized_response("Authentication required")

    engine = WeeklyContestScheduler(db, clock=clock)
    try:
        drawn = await engine.draw_pending(clock.now())
    except WeeklyContestError as e:
        return contest_error_response(e)

    return success_response(message=f"{len(drawn)} contest(s) drawn", data={"drawn": drawn})
