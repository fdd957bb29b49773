from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class AuditAction(str, Enum):
    """Audit action types"""
    # Lifecycle (scheduler)
    CONTEST_CREATED = "contest_created"
    CONTEST_ACTIVATED = "contest_activated"
    CONTEST_CLOSED = "contest_closed"
    CONTEST_ARCHIVED = "contest_archived"
    CONTEST_DRAWN = "contest_drawn"

    # Participation
    PARTICIPATION_RECORDED = "participation_recorded"


class AuditEntry(BaseModel):
    """Audit trail entry"""
    contest_id: str
    action: AuditAction
    actor: str  # user id, or "system" for the scheduler
    metadata: Optional[Dict[str, Any]] = None  # Additional info
    timestamp: datetime
