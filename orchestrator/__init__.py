"""
Orchestrator Package - Tracker Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
Wires the store, provider factory, scheduler and discovery
services into one controlled runtime.

============================================================
USAGE
============================================================

    from orchestrator import Tracker, setup_logging

    setup_logging(level="INFO", log_format="text")
    tracker = Tracker(store, ProviderFactory(), RealTimeNewsFetcher())
    await tracker.start()
    await tracker.backfill_history()

============================================================
"""

from orchestrator.core import Tracker, setup_logging


__all__ = [
    "Tracker",
    "setup_logging",
]
