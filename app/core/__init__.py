"""
Core module for application infrastructure.
"""
from app.core.scheduler import setup_scheduler, start_scheduler, stop_scheduler, get_scheduler_status

__all__ = [
    "setup_scheduler",
    "start_scheduler",
    "stop_scheduler",
    "get_scheduler_status"
]
