from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum


class ContestStatus(str, Enum):
    """
    Weekly contest status - State Machine

    State Transitions:
    - SCHEDULED -> ACTIVE (scheduler, at window_start)
    - ACTIVE -> CLOSED (scheduler, at window_end, tally frozen)
    - CLOSED -> ARCHIVED (scheduler, right after closing)
    """
    SCHEDULED = "scheduled"  # Created ahead of time, window_start in the future
    ACTIVE = "active"  # Inside its window, accepting participations
    CLOSED = "closed"  # Window over, tally frozen, awaiting archival
    ARCHIVED = "archived"  # Terminal, kept for history


# Statuses served by the history endpoint
HISTORY_STATUSES = [ContestStatus.CLOSED, ContestStatus.ARCHIVED]


class ContestWinner(BaseModel):
    """Participant picked by the draw"""
    user_id: str
    position: int = 1
    prize: str
    selected_at: datetime


class WeeklyContestInDB(BaseModel):
    """Schema for a weekly contest stored in database"""
    title: str
    description: str
    week_number: int
    year: int
    window_start: datetime
    window_end: datetime
    status: ContestStatus = ContestStatus.SCHEDULED
    current_participants: int = 0
    max_participants: Optional[int] = None  # None = unlimited

    # Winner draw (runs once the contest has closed)
    prize: str = "Main prize"
    auto_draw_enabled: bool = True
    draw_completed: bool = False
    draw_completed_at: Optional[datetime] = None
    winner: Optional[ContestWinner] = None

    # Lifecycle
    closed_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    # Timestamps
    created_at: datetime
    updated_at: datetime


class ContestWinnerResponse(BaseModel):
    userId: str
    position: int
    prize: str
    selectedAt: datetime


class WeeklyContestResponse(BaseModel):
    """Public contest projection"""
    id: str
    title: str
    description: str
    weekNumber: int
    year: int
    windowStart: datetime
    windowEnd: datetime
    status: ContestStatus
    currentParticipants: int = 0
    maxParticipants: Optional[int] = None
    prize: Optional[str] = None
    drawCompleted: bool = False
    drawCompletedAt: Optional[datetime] = None
    winner: Optional[ContestWinnerResponse] = None
    createdAt: datetime
    closedAt: Optional[datetime] = None
    archivedAt: Optional[datetime] = None

    @classmethod
    def from_document(cls, contest: dict) -> "WeeklyContestResponse":
        winner = contest.get("winner")
        return cls(
            id=str(contest["_id"]),
            title=contest["title"],
            description=contest.get("description", ""),
            weekNumber=contest.get("week_number", 0),
            year=contest.get("year", contest["window_start"].year),
            windowStart=contest["window_start"],
            windowEnd=contest["window_end"],
            status=contest["status"],
            currentParticipants=contest.get("current_participants", 0),
            maxParticipants=contest.get("max_participants"),
            prize=contest.get("prize"),
            drawCompleted=contest.get("draw_completed", False),
            drawCompletedAt=contest.get("draw_completed_at"),
            winner=ContestWinnerResponse(
                userId=winner["user_id"],
                position=winner.get("position", 1),
                prize=winner["prize"],
                selectedAt=winner["selected_at"]
            ) if winner else None,
            createdAt=contest["created_at"],
            closedAt=contest.get("closed_at"),
            archivedAt=contest.get("archived_at"),
        )


class ContestStats(BaseModel):
    """
    Aggregate numbers across all weekly contests.

    totalParticipants is counted from the participation ledger and
    currentParticipants from the current contest's cached counter. The two
    are read separately, so they can disagree for a moment.
    """
    totalContests: int = 0
    activeContests: int = 0
    archivedContests: int = 0
    totalParticipants: int = 0
    currentParticipants: int = 0
    asOf: datetime
