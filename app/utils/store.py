"""
Bounded store calls.

Every Mongo round-trip of the contest core goes through ``store_call`` so a
slow or unreachable server surfaces as ``StoreUnavailable`` instead of a hang.
No retry happens here; retry policy belongs to the caller.
"""
import asyncio
from typing import Any, Awaitable

from pymongo.errors import ConnectionFailure, ExecutionTimeout

from app.core.errors import StoreUnavailable


async def store_call(awaitable: Awaitable[Any], operation: str, timeout: float) -> Any:
    """Await a driver call under ``timeout`` seconds."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        raise StoreUnavailable(operation, f"timed out after {timeout}s")
    except (ConnectionFailure, ExecutionTimeout) as e:
        # ConnectionFailure covers AutoReconnect, NetworkTimeout and
        # ServerSelectionTimeoutError
        raise StoreUnavailable(operation, str(e))
