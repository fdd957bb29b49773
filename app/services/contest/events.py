"""
Participation-recorded signal.

External consumers (notifications, audit) subscribe an async handler.
Handlers run as detached tasks: the participate call never waits for them
and their failures only reach the log.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Set

logger = logging.getLogger(__name__)

Handler = Callable[[dict], Awaitable[None]]


class ParticipationEvents:

    def __init__(self):
        self._handlers: List[Handler] = []
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, handler: Handler):
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: Handler):
        if handler in self._handlers:
            self._handlers.remove(handler)

    def clear(self):
        self._handlers.clear()

    def emit(self, participation: dict) -> int:
        """Schedule every handler; returns how many were scheduled."""
        for handler in list(self._handlers):
            task = asyncio.create_task(self._dispatch(handler, dict(participation)))
            # Keep a reference until done so the task is not garbage collected
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return len(self._handlers)

    async def drain(self):
        """Wait for in-flight handlers (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _dispatch(self, handler: Handler, participation: dict):
        try:
            await handler(participation)
        except Exception:
            logger.exception(
                "Participation handler %s failed",
                getattr(handler, "__qualname__", repr(handler)),
                extra={"contest_id": participation.get("contest_id")}
            )


# Process-wide signal
participation_events = ParticipationEvents()
