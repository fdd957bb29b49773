"""
Initialize Weekly Contest
Run this script to create the indexes and bootstrap the weekly contest
without waiting for the server's scheduler.

Usage:
    python init_weekly_contest.py            # one tick
    python init_weekly_contest.py --ticks 2  # e.g. create then activate
"""
import argparse
import asyncio

from app.core import config
from app.core.clock import clock
from app.core.observability import setup_logging
from app.database import Database
from app.services.contest.query import ContestQueryService
from app.services.scheduler.contest_scheduler import WeeklyContestScheduler


async def init_weekly_contest(ticks: int = 1):
    """Ensure indexes, run the lifecycle tick and show the current contest"""
    await Database.connect_db()

    try:
        db = Database.get_db()
        engine = WeeklyContestScheduler(db, clock=clock)

        print("=" * 60)
        print("Initializing weekly contest")
        print("=" * 60)

        for i in range(ticks):
            result = await engine.tick()
            print(f"\n[TICK {i + 1}] at {result['run_at']}")
            for key in ("archived", "activated", "created"):
                for item in result[key]:
                    print(f"    {key:<9} {item['contest_id']}  {item['title']}")

        contest = await ContestQueryService(db, clock=clock).get_current()
        print("\n" + "-" * 60)
        if contest is None:
            print("No current contest")
        else:
            print(f"    Contest:      {contest['title']}")
            print(f"    ID:           {contest['_id']}")
            print(f"    Status:       {contest['status']}")
            print(f"    Window:       {contest['window_start'].isoformat()} -> {contest['window_end'].isoformat()}")
            print(f"    Participants: {contest.get('current_participants', 0)}")
        print("=" * 60)

    finally:
        await Database.close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Bootstrap the weekly contest")
    parser.add_argument("--ticks", type=int, default=1, help="number of scheduler ticks to run")
    args = parser.parse_args()

    setup_logging(config.LOG_LEVEL, config.LOG_FORMAT)
    asyncio.run(init_weekly_contest(args.ticks))
