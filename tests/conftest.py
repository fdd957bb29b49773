"""Root conftest: shared fixtures.

Every test gets its own in-memory Mongo (mongomock-motor) with the real
indexes, and a ManualClock parked at 2024-01-01T00:00 UTC.
"""
import os
import uuid
from datetime import datetime, timedelta

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from app.core.clock import ManualClock, get_clock
from app.database import get_database
from app.services.auth.security import security_service
from app.services.contest.audit import AuditService
from app.services.contest.contest_store import ContestStore
from app.services.contest.events import ParticipationEvents
from app.services.contest.participation import ParticipationService
from app.services.contest.participation_ledger import ParticipationLedger
from app.services.contest.query import ContestQueryService
from app.services.scheduler.contest_scheduler import WeeklyContestScheduler

START = datetime(2024, 1, 1)
WEEK = timedelta(days=7)


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
async def db():
    client = AsyncMongoMockClient()
    database = client[f"weekly_contest_{uuid.uuid4().hex[:8]}"]
    await ParticipationLedger.ensure_indexes(database)
    await ContestStore.ensure_indexes(database)
    await AuditService.ensure_indexes(database)
    return database


@pytest.fixture
def store(db):
    return ContestStore(db)


@pytest.fixture
def ledger(db):
    return ParticipationLedger(db)


@pytest.fixture
def engine(db, clock):
    return WeeklyContestScheduler(db, clock=clock)


@pytest.fixture
def events():
    return ParticipationEvents()


@pytest.fixture
def participation_service(db, clock, events):
    return ParticipationService(db, clock=clock, events=events)


@pytest.fixture
def query_service(db, clock):
    return ContestQueryService(db, clock=clock)


@pytest.fixture
async def active_contest(engine, store):
    """Bootstrap: first tick schedules, second tick activates."""
    await engine.tick()
    await engine.tick()
    return await store.get_active()


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = "u1") -> dict:
        token = security_service.create_access_token(user_id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
async def client(db, clock):
    """FastAPI test client with database and clock overridden."""
    from app.main import app

    async def override_get_database():
        return db

    app.dependency_overrides[get_database] = override_get_database
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
