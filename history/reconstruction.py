"""
History Reconstruction.

============================================================
RESPONSIBILITY
============================================================
Turns raw dated events into a cumulative score series and applies
series / live events to entities.

- Events outside the window or without http(s) provenance are dropped
- Survivors are stably sorted by date and folded from the baseline
- Entity score always equals the last history score after an update

============================================================
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional
from urllib.parse import urlparse

from core.clock import now_utc, parse_timestamp
from core.constants import BASELINE_SCORE, MAX_LIVE_HISTORY_POINTS
from core.models import Entity, FeedEvent, HistoryPoint


logger = logging.getLogger(__name__)


def is_valid_provenance_url(url: Optional[str]) -> bool:
    """True for a syntactically valid absolute http(s) URL."""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def reconstruct_history(
    events: Iterable[Any],
    window_days: int,
    now: Optional[datetime] = None,
    baseline: float = BASELINE_SCORE,
) -> list[HistoryPoint]:
    """
    Build a cumulative score series from dated events.

    Args:
        events: Parsed historical events exposing date, headline,
            sentiment, impact (signed) and source_url
        window_days: Only events dated within [now - window_days, now] survive
        now: Reference time (defaults to the global clock)
        baseline: Starting score of the fold

    Returns:
        One HistoryPoint per surviving event, ascending by date. Empty
        when nothing survives.
    """
    now = now or now_utc()
    cutoff = now - timedelta(days=window_days)

    survivors: list[tuple[datetime, Any]] = []
    dropped = 0
    for event in events:
        when = parse_timestamp(event.date)
        if when is None or when < cutoff or when > now:
            dropped += 1
            continue
        if not is_valid_provenance_url(event.source_url):
            dropped += 1
            continue
        survivors.append((when, event))

    if dropped:
        logger.debug(f"[history] Dropped {dropped} events outside window or without URL")

    # sorted() is stable: same-day events keep their input order
    survivors = sorted(survivors, key=lambda item: item[0])

    score = baseline
    points: list[HistoryPoint] = []
    for _, event in survivors:
        score += event.impact
        points.append(
            HistoryPoint(
                time=event.date,
                score=round(score, 2),
                reason=event.headline or None,
                source_url=event.source_url,
                sentiment=event.sentiment,
            )
        )
    return points


def apply_history(entity: Entity, points: list[HistoryPoint]) -> bool:
    """
    Replace an entity's history with a reconstructed series.

    Empty series leave the entity untouched. Returns True when applied.
    """
    if not points:
        return False

    entity.history = list(points)
    entity.score = points[-1].score
    previous = points[-2].score if len(points) > 1 else BASELINE_SCORE
    entity.trend = round(points[-1].score - previous, 2)
    return True


def apply_feed_event(
    entity: Entity,
    event: FeedEvent,
    source_weight: float = 1.0,
    now: Optional[datetime] = None,
) -> float:
    """
    Apply one live event to an entity.

    The signed change is the event impact (positive adds, negative
    subtracts, neutral is zero) scaled by the source weight. A live
    point is appended and history is capped to the most recent points.

    Returns:
        The applied change
    """
    now = now or now_utc()
    change = round(event.signed_impact * source_weight, 2)
    new_score = round(entity.score + change, 2)

    entity.history.append(
        HistoryPoint(
            time=now.date().isoformat(),
            score=new_score,
            reason=f"Live: {event.headline}",
            source_url=event.url,
            sentiment=event.sentiment,
        )
    )
    if len(entity.history) > MAX_LIVE_HISTORY_POINTS:
        entity.history = entity.history[-MAX_LIVE_HISTORY_POINTS:]

    entity.score = new_score
    entity.trend = change
    return change
