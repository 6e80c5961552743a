"""
Analytics - Cross-Entity Summary.

Aggregates the live feed and entity list into a dashboard summary:
total events, average sentiment, the most active source, the top
mover and the top-5 media share.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Sequence

from core.models import Entity, FeedEvent


MEDIA_SHARE_SIZE = 5


@dataclass(frozen=True)
class AnalyticsSummary:
    total_events: int = 0
    avg_sentiment: float = 0.0
    most_influential_source: str = "Unknown"
    top_mover_name: str = "None"
    top_mover_change: float = 0.0
    media_share: list[tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_events": self.total_events,
            "avg_sentiment": self.avg_sentiment,
            "most_influential_source": self.most_influential_source,
            "top_mover": {"name": self.top_mover_name, "change": self.top_mover_change},
            "media_share": [
                {"source": source, "count": count} for source, count in self.media_share
            ],
        }


def calculate_analytics_summary(
    feed: Sequence[FeedEvent],
    entities: Sequence[Entity],
) -> AnalyticsSummary:
    """
    Summarize the feed and entity list.

    Ties for most influential source keep the first source seen;
    ties for top mover keep the first entity.
    """
    total = len(feed)
    avg_sentiment = 0.0
    if total:
        avg_sentiment = round(sum(event.sentiment.sign for event in feed) / total, 2)

    # Counter preserves first-seen order for equal counts
    counts = Counter(event.source_name for event in feed)
    most_influential = "Unknown"
    best_count = 0
    for name, count in counts.items():
        if count > best_count:
            best_count = count
            most_influential = name

    mover_name, mover_change = "None", 0.0
    for entity in entities:
        if abs(entity.trend) > abs(mover_change):
            mover_name, mover_change = entity.name, entity.trend

    return AnalyticsSummary(
        total_events=total,
        avg_sentiment=avg_sentiment,
        most_influential_source=most_influential,
        top_mover_name=mover_name,
        top_mover_change=mover_change,
        media_share=counts.most_common(MEDIA_SHARE_SIZE),
    )
