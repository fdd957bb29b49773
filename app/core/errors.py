"""
Error taxonomy for the weekly contest core.

Every error carries a stable machine-readable ``code`` so callers can tell
"already done" from "not allowed yet" from "not found", plus a human message.
"""
from typing import Any, Dict, Optional


class WeeklyContestError(Exception):
    """Base exception for all weekly contest failures."""

    code = "WEEKLY_CONTEST_ERROR"
    http_status = 500
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> dict:
        """Standard error body (same envelope as error_response)."""
        error = {
            "kind": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            error["details"] = self.details
        return {
            "success": False,
            "message": self.message,
            "error": error,
        }


# ─── Request-path errors ─────────────────────────────────────────

class ContestNotFound(WeeklyContestError):
    code = "CONTEST_NOT_FOUND"
    http_status = 404

    def __init__(self, contest_id: Optional[str] = None):
        if contest_id:
            message = f"Contest '{contest_id}' not found"
        else:
            message = "No weekly contest available"
        super().__init__(message, {"contest_id": contest_id} if contest_id else None)
        self.contest_id = contest_id


class ContestNotActive(WeeklyContestError):
    """Contest exists but is not accepting participations right now."""
    code = "CONTEST_NOT_ACTIVE"
    http_status = 422

    def __init__(self, contest_id: str, status: str, reason: Optional[str] = None):
        message = f"Contest '{contest_id}' is not open for participation (status: {status})"
        details = {"contest_id": contest_id, "status": status}
        if reason:
            message = f"{message}: window {reason}"
            details["reason"] = reason
        super().__init__(message, details)
        self.contest_id = contest_id
        self.status = status
        self.reason = reason


class ContestFull(WeeklyContestError):
    """Contest reached max_participants."""
    code = "CONTEST_FULL"
    http_status = 422

    def __init__(self, contest_id: str, max_participants: int):
        super().__init__(
            f"Contest '{contest_id}' is full ({max_participants} participants)",
            {"contest_id": contest_id, "max_participants": max_participants}
        )
        self.contest_id = contest_id
        self.max_participants = max_participants


class DuplicateParticipation(WeeklyContestError):
    code = "DUPLICATE_PARTICIPATION"
    http_status = 409

    def __init__(self, contest_id: str, user_id: str):
        super().__init__(
            "You are already participating in this contest",
            {"contest_id": contest_id}
        )
        self.contest_id = contest_id
        self.user_id = user_id


# ─── Storage-level errors ────────────────────────────────────────

class AlreadyParticipated(WeeklyContestError):
    """Unique (contest_id, user_id) key already present in the ledger."""
    code = "ALREADY_PARTICIPATED"
    http_status = 409

    def __init__(self, contest_id: str, user_id: str):
        super().__init__(f"User already recorded for contest '{contest_id}'")
        self.contest_id = contest_id
        self.user_id = user_id


class PreconditionFailed(WeeklyContestError):
    """Conditional write lost a race; recovered by the scheduler."""
    code = "PRECONDITION_FAILED"
    http_status = 409

    def __init__(self, contest_id: Optional[str], expected: str, target: str):
        super().__init__(
            f"Contest '{contest_id}' is no longer '{expected}', cannot move to '{target}'"
        )
        self.contest_id = contest_id
        self.expected = expected
        self.target = target


class StoreUnavailable(WeeklyContestError):
    """Store call timed out or the connection failed."""
    code = "STORE_UNAVAILABLE"
    http_status = 503
    retryable = True

    def __init__(self, operation: str, reason: str = ""):
        message = f"Contest store unavailable during {operation}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"operation": operation})
        self.operation = operation
