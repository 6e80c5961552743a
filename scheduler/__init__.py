"""
Scheduler - Interval-driven event fetching.

Usage:
    from scheduler import FetchScheduler

    scheduler = FetchScheduler(store, provider_resolver)
    await scheduler.start()
    results = await scheduler.fetch_now()
    scheduler.stop()
"""

from scheduler.fetch_scheduler import (
    FetchResult,
    FetchScheduler,
    SchedulerState,
)


__all__ = [
    "FetchResult",
    "FetchScheduler",
    "SchedulerState",
]
