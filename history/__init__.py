"""
History Module.

Cumulative score series reconstruction and live-event application.

Usage:
    from history import reconstruct_history, apply_history

    points = reconstruct_history(events, window_days=60)
    apply_history(entity, points)
"""

from history.reconstruction import (
    apply_feed_event,
    apply_history,
    is_valid_provenance_url,
    reconstruct_history,
)


__all__ = [
    "apply_feed_event",
    "apply_history",
    "is_valid_provenance_url",
    "reconstruct_history",
]
