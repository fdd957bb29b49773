"""Clock and logging setup."""

import json
import logging
from datetime import datetime, timedelta, timezone

from app.core.clock import ManualClock, SystemClock
from app.core.observability import HANDLER_NAME, JSONFormatter, setup_logging


def test_system_clock_is_naive_utc():
    now = SystemClock().now()

    assert now.tzinfo is None
    assert abs(now - datetime.now(timezone.utc).replace(tzinfo=None)) < timedelta(seconds=5)


def test_manual_clock_only_moves_when_told():
    clock = ManualClock(datetime(2024, 1, 1))

    assert clock.now() == datetime(2024, 1, 1)
    assert clock.advance(timedelta(days=7)) == datetime(2024, 1, 8)
    clock.set(datetime(2024, 2, 1))
    assert clock.now() == datetime(2024, 2, 1)


def test_json_formatter_includes_extras():
    record = logging.LogRecord(
        "app.test", logging.INFO, __file__, 1, "Contest %s archived", ("c1",), None,
    )
    record.contest_id = "c1"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "Contest c1 archived"
    assert payload["level"] == "INFO"
    assert payload["contest_id"] == "c1"
    assert "user_id" not in payload


def test_setup_logging_is_idempotent():
    root = logging.getLogger()
    original_level = root.level
    try:
        setup_logging("DEBUG", "json")
        setup_logging("WARNING", "text")

        ours = [h for h in root.handlers if h.get_name() == HANDLER_NAME]
        assert len(ours) == 1
        assert root.level == logging.WARNING
    finally:
        for handler in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
            root.removeHandler(handler)
        root.setLevel(original_level)
