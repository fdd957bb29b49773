"""Contest Store: conditional status updates, counters and history paging.

Invariants:
    - update_status only applies when the stored status matches from_status
    - A lost compare-and-swap raises PreconditionFailed and changes nothing
    - History lists only closed/archived contests, newest window first
    - Counter increments only land while the contest is active
    - A draw result is written once
"""

from datetime import datetime, timedelta

import pytest
from bson import ObjectId

from app.core.errors import PreconditionFailed
from app.models.contest.weekly_contest import ContestStatus, WeeklyContestInDB

START = datetime(2024, 1, 1)
WEEK = timedelta(days=7)


def make_contest(week: int, status: ContestStatus = ContestStatus.SCHEDULED) -> WeeklyContestInDB:
    window_start = START + WEEK * week
    return WeeklyContestInDB(
        title=f"Weekly Contest - Week {week + 1} 2024",
        description="test",
        week_number=week + 1,
        year=2024,
        window_start=window_start,
        window_end=window_start + WEEK,
        status=status,
        created_at=START,
        updated_at=START,
    )


async def test_create_assigns_id_and_stores_plain_status(store):
    created = await store.create(make_contest(0))

    assert isinstance(created["_id"], ObjectId)
    fetched = await store.get_by_id(str(created["_id"]))
    assert fetched["status"] == "scheduled"
    assert fetched["current_participants"] == 0


async def test_create_same_window_twice_raises_precondition_failed(store):
    await store.create(make_contest(0))

    with pytest.raises(PreconditionFailed):
        await store.create(make_contest(0))
    assert await store.count() == 1


async def test_get_by_id_unknown_or_malformed_returns_none(store):
    assert await store.get_by_id(str(ObjectId())) is None
    assert await store.get_by_id("not-an-object-id") is None


async def test_update_status_applies_when_status_matches(store):
    created = await store.create(make_contest(0))

    updated = await store.update_status(
        str(created["_id"]), ContestStatus.SCHEDULED, ContestStatus.ACTIVE, now=START,
    )

    assert updated["status"] == "active"
    assert (await store.get_active())["_id"] == created["_id"]


async def test_update_status_with_stale_from_status_is_a_noop(store):
    created = await store.create(make_contest(0))
    contest_id = str(created["_id"])
    await store.update_status(contest_id, ContestStatus.SCHEDULED, ContestStatus.ACTIVE)

    with pytest.raises(PreconditionFailed) as exc_info:
        await store.update_status(contest_id, ContestStatus.SCHEDULED, ContestStatus.ACTIVE)

    assert exc_info.value.expected == "scheduled"
    assert (await store.get_by_id(contest_id))["status"] == "active"


async def test_update_status_unknown_contest_raises_precondition_failed(store):
    with pytest.raises(PreconditionFailed):
        await store.update_status(str(ObjectId()), ContestStatus.ACTIVE, ContestStatus.CLOSED)


async def test_increment_participants_is_atomic_increment(store):
    created = await store.create(make_contest(0, ContestStatus.ACTIVE))
    contest_id = str(created["_id"])

    await store.increment_participants(contest_id)
    await store.increment_participants(contest_id)

    assert (await store.get_by_id(contest_id))["current_participants"] == 2


async def test_increment_only_applies_while_active(store):
    scheduled = await store.create(make_contest(0))
    archived = await store.create(make_contest(1, ContestStatus.ARCHIVED))

    assert await store.increment_participants(str(scheduled["_id"])) is False
    assert await store.increment_participants(str(archived["_id"])) is False
    assert (await store.get_by_id(str(archived["_id"])))["current_participants"] == 0


async def test_increment_respects_capacity(store):
    created = await store.create(make_contest(0, ContestStatus.ACTIVE))
    contest_id = str(created["_id"])

    results = [await store.increment_participants(contest_id, max_participants=2) for _ in range(3)]

    assert results == [True, True, False]
    assert (await store.get_by_id(contest_id))["current_participants"] == 2


async def test_release_participant_gives_slot_back(store):
    created = await store.create(make_contest(0, ContestStatus.ACTIVE))
    contest_id = str(created["_id"])
    await store.increment_participants(contest_id)

    assert await store.release_participant(contest_id) is True
    assert await store.release_participant(contest_id) is False
    assert (await store.get_by_id(contest_id))["current_participants"] == 0


async def test_freeze_participant_count_overwrites_closed_tally(store):
    created = await store.create(make_contest(0, ContestStatus.ACTIVE))
    contest_id = str(created["_id"])
    for _ in range(3):
        await store.increment_participants(contest_id)

    # Still active: nothing to freeze
    assert await store.freeze_participant_count(contest_id, 1) is False

    await store.update_status(contest_id, ContestStatus.ACTIVE, ContestStatus.CLOSED)
    assert await store.freeze_participant_count(contest_id, 1) is True
    assert (await store.get_by_id(contest_id))["current_participants"] == 1

    assert await store.increment_participants(contest_id) is False
    assert (await store.get_by_id(contest_id))["current_participants"] == 1


async def test_record_draw_applies_once(store):
    created = await store.create(make_contest(0, ContestStatus.ARCHIVED))
    contest_id = str(created["_id"])
    winner = {"user_id": "u1", "position": 1, "prize": "Main prize", "selected_at": START}

    assert [c["_id"] for c in await store.list_undrawn()] == [created["_id"]]
    drawn = await store.record_draw(contest_id, winner, START)

    assert drawn["draw_completed"] is True
    assert drawn["winner"]["user_id"] == "u1"
    assert await store.list_undrawn() == []
    with pytest.raises(PreconditionFailed):
        await store.record_draw(contest_id, {**winner, "user_id": "u2"}, START)
    assert (await store.get_by_id(contest_id))["winner"]["user_id"] == "u1"


async def test_record_draw_refuses_running_contest(store):
    created = await store.create(make_contest(0, ContestStatus.ACTIVE))

    with pytest.raises(PreconditionFailed):
        await store.record_draw(str(created["_id"]), None, START)
    assert await store.list_undrawn() == []


async def test_get_scheduled_and_latest(store):
    await store.create(make_contest(2))
    await store.create(make_contest(1))

    assert (await store.get_scheduled())["window_start"] == START + WEEK
    assert (await store.get_latest())["window_end"] == START + WEEK * 3


async def test_list_history_only_finished_contests_newest_first(store):
    for week, status in [
        (0, ContestStatus.ARCHIVED),
        (1, ContestStatus.ARCHIVED),
        (2, ContestStatus.CLOSED),
        (3, ContestStatus.ACTIVE),
        (4, ContestStatus.SCHEDULED),
    ]:
        await store.create(make_contest(week, status))

    items, total = await store.list_history(offset=0, limit=10)

    assert total == 3
    assert [c["week_number"] for c in items] == [3, 2, 1]


async def test_list_history_paginates_by_offset_and_limit(store):
    for week in range(5):
        await store.create(make_contest(week, ContestStatus.ARCHIVED))

    first, total = await store.list_history(offset=0, limit=2)
    second, _ = await store.list_history(offset=2, limit=2)
    last, _ = await store.list_history(offset=4, limit=2)

    assert total == 5
    assert [c["week_number"] for c in first] == [5, 4]
    assert [c["week_number"] for c in second] == [3, 2]
    assert [c["week_number"] for c in last] == [1]


async def test_count_by_status(store):
    await store.create(make_contest(0, ContestStatus.ARCHIVED))
    await store.create(make_contest(1, ContestStatus.ACTIVE))

    assert await store.count() == 2
    assert await store.count(ContestStatus.ARCHIVED) == 1
    assert await store.count(ContestStatus.SCHEDULED) == 0
