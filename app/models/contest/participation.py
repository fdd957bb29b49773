from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ParticipationInDB(BaseModel):
    """Schema for a ledger entry. Never updated or deleted once written."""
    contest_id: str
    user_id: str
    participated_at: datetime


class ParticipationRequest(BaseModel):
    """Body of POST /contests/weekly/participate (contest defaults to the current one)"""
    contestId: Optional[str] = Field(None, description="Target contest ID")


class ParticipationResponse(BaseModel):
    id: str
    contestId: str
    userId: str
    participatedAt: datetime

    @classmethod
    def from_document(cls, participation: dict) -> "ParticipationResponse":
        return cls(
            id=str(participation["_id"]),
            contestId=participation["contest_id"],
            userId=participation["user_id"],
            participatedAt=participation["participated_at"],
        )


class ParticipationStatus(BaseModel):
    """Whether the caller takes part in the current contest"""
    isParticipating: bool
    contestId: Optional[str] = None
    contestTitle: Optional[str] = None
    participatedAt: Optional[datetime] = None
    reason: Optional[str] = None
