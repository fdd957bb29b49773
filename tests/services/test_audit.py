"""Audit trail: lifecycle and participation entries, best effort."""

from datetime import datetime

from app.models.contest.audit import AuditAction
from app.services.contest.audit import AuditService

START = datetime(2024, 1, 1)


async def test_log_action_and_history_newest_first(db):
    audit = AuditService(db)
    await audit.log_action("c1", AuditAction.CONTEST_CREATED, timestamp=START)
    await audit.log_action("c1", AuditAction.CONTEST_ACTIVATED, timestamp=datetime(2024, 1, 2))
    await audit.log_action("c2", AuditAction.CONTEST_CREATED, timestamp=START)

    history = await audit.get_contest_history("c1")

    assert [entry["action"] for entry in history] == ["contest_activated", "contest_created"]
    assert history[0]["actor"] == "system"


async def test_log_action_failure_returns_false(db):
    class DownCollection:
        async def insert_one(self, document):
            raise RuntimeError("disk full")

    audit = AuditService(db)
    audit.audit_log = DownCollection()

    assert await audit.log_action("c1", AuditAction.CONTEST_CLOSED) is False


async def test_participation_subscriber_writes_entry(db, events, participation_service, active_contest):
    audit = AuditService(db)
    events.subscribe(audit.on_participation)
    contest_id = str(active_contest["_id"])

    await participation_service.participate(contest_id, "u7")
    await events.drain()

    history = await audit.get_contest_history(contest_id)
    recorded = [entry for entry in history if entry["action"] == "participation_recorded"]
    assert len(recorded) == 1
    assert recorded[0]["actor"] == "u7"
    assert recorded[0]["timestamp"] == START


def test_subscribe_is_idempotent(db, events):
    audit = AuditService(db)
    events.subscribe(audit.on_participation)
    events.subscribe(audit.on_participation)
    events.unsubscribe(audit.on_participation)

    assert events.emit({"contest_id": "c1", "user_id": "u1"}) == 0
