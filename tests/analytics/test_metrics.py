"""
Tests for Analytics.

============================================================
PURPOSE
============================================================
Covers:
1. Series metrics (volatility, momentum, trend strength)
2. Prediction and consistency
3. Moving averages
4. Sentiment breakdown and ratio
5. Feed-based metrics
6. Cross-entity summary

============================================================
"""

from datetime import datetime, timedelta, timezone

import pytest

from analytics import (
    calculate_all_metrics,
    calculate_analytics_summary,
    calculate_audience_reach,
    calculate_consistency_score,
    calculate_ema,
    calculate_influence_score,
    calculate_media_frequency,
    calculate_momentum,
    calculate_moving_averages,
    calculate_prediction,
    calculate_sentiment_breakdown,
    calculate_sentiment_ratio,
    calculate_sma,
    calculate_trend_strength,
    calculate_volatility,
)
from core.models import Entity, FeedEvent, HistoryPoint, Sentiment, Source


NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


# ============================================================
# FIXTURES
# ============================================================

def series(scores, dated=True, sentiments=None):
    start = NOW - timedelta(days=len(scores))
    points = []
    for index, score in enumerate(scores):
        points.append(
            HistoryPoint(
                time=(start + timedelta(days=index)).date().isoformat() if dated else "",
                score=score,
                sentiment=sentiments[index] if sentiments else None,
            )
        )
    return points


def feed_event(entity_id="e1", source_name="Daily Nation", sentiment=Sentiment.POSITIVE,
               impact=0.5, days_ago=1):
    return FeedEvent(
        id=f"{entity_id}-{source_name}-{days_ago}-{impact}",
        entity_id=entity_id,
        source_id="s1",
        source_name=source_name,
        headline="h",
        sentiment=sentiment,
        impact=impact,
        timestamp=(NOW - timedelta(days=days_ago)).isoformat(),
    )


@pytest.fixture
def rising():
    """14 dated points climbing one per day from 100."""
    return series([100.0 + i for i in range(14)])


# ============================================================
# SERIES METRICS
# ============================================================

class TestSeriesMetrics:
    """Tests for volatility, momentum and trend strength."""

    def test_volatility(self, rising):
        assert calculate_volatility(rising) == pytest.approx(16.25 ** 0.5)

    def test_volatility_skips_placeholders(self):
        history = series([100.0, 140.0], dated=False) + series([100.0, 102.0])
        assert calculate_volatility(history) == pytest.approx(1.0)

    def test_volatility_sparse(self):
        assert calculate_volatility(series([100.0])) == 0.0
        assert calculate_volatility([]) == 0.0

    def test_momentum(self, rising):
        assert calculate_momentum(rising) == 7.0

    def test_momentum_needs_fourteen_dated_points(self):
        assert calculate_momentum(series([100.0 + i for i in range(13)])) == 0.0
        assert calculate_momentum(series([100.0 + i for i in range(20)], dated=False)) == 0.0

    def test_trend_strength(self, rising):
        assert calculate_trend_strength(rising) == 1.0

    def test_trend_strength_flat_or_short(self):
        assert calculate_trend_strength(series([100.0] * 10)) == 0.0
        assert calculate_trend_strength(series([100.0, 105.0, 110.0])) == 0.0


class TestPrediction:
    """Tests for calculate_prediction()."""

    def test_linear_series_clamped_and_confident(self, rising):
        prediction = calculate_prediction(rising)
        assert prediction.value == 120.0
        assert prediction.confidence == 100.0
        assert prediction.trend == "rising"

    def test_falling_series(self):
        prediction = calculate_prediction(series([110.0 - i for i in range(10)]))
        assert prediction.trend == "falling"
        assert prediction.value == 94.0

    def test_flat_series(self):
        prediction = calculate_prediction(series([100.0] * 7))
        assert prediction.value == 100.0
        assert prediction.trend == "stable"

    def test_too_short(self):
        prediction = calculate_prediction(series([100.0] * 6))
        assert prediction.value == 100.0
        assert prediction.confidence == 0.0
        assert prediction.trend == "stable"

    def test_noise_lowers_confidence(self):
        noisy = series([100.0, 110.0, 95.0, 112.0, 90.0, 108.0, 97.0, 111.0])
        assert calculate_prediction(noisy).confidence < 100.0


class TestConsistency:
    """Tests for calculate_consistency_score()."""

    def test_constant_series(self):
        assert calculate_consistency_score(series([100.0] * 5)) == 100.0

    def test_short_series(self):
        assert calculate_consistency_score(series([100.0] * 4)) == 0.0

    def test_variation_lowers_score(self, rising):
        assert 0 < calculate_consistency_score(rising) < 100

    def test_negative_mean_stays_within_bounds(self):
        negative = calculate_consistency_score(series([-10.0, -12.0, -8.0, -11.0, -9.0]))
        mirrored = calculate_consistency_score(series([10.0, 12.0, 8.0, 11.0, 9.0]))
        assert negative == mirrored == 85.86


# ============================================================
# MOVING AVERAGES
# ============================================================

class TestMovingAverages:
    """Tests for SMA / EMA."""

    def test_sma(self, rising):
        assert calculate_sma(rising, 7) == 110.0
        assert calculate_sma(rising, 14) == 106.5

    def test_sma_short_series_uses_latest(self, rising):
        assert calculate_sma(rising, 30) == 113.0

    def test_sma_empty(self):
        assert calculate_sma([], 7) == 100.0

    def test_ema(self):
        assert calculate_ema(series([100.0, 110.0]), 12) == 101.54
        assert calculate_ema([]) == 100.0

    def test_moving_averages_bundle(self, rising):
        averages = calculate_moving_averages(rising)
        assert averages.sma7 == 110.0
        assert averages.sma30 == 113.0
        assert set(averages.to_dict()) == {"sma7", "sma14", "sma30", "ema12"}


# ============================================================
# SENTIMENT
# ============================================================

class TestSentiment:
    """Tests for sentiment breakdown and ratio."""

    def test_breakdown_counts_untagged_as_neutral(self):
        history = series(
            [100.0] * 4,
            sentiments=[Sentiment.POSITIVE, Sentiment.POSITIVE, Sentiment.NEGATIVE, None],
        )
        breakdown = calculate_sentiment_breakdown(history)
        assert (breakdown.positive, breakdown.negative, breakdown.neutral) == (50.0, 25.0, 25.0)

    def test_breakdown_empty(self):
        assert calculate_sentiment_breakdown([]).to_dict() == {
            "positive": 0.0, "negative": 0.0, "neutral": 0.0,
        }

    def test_ratio(self):
        history = series(
            [100.0] * 3,
            sentiments=[Sentiment.POSITIVE, Sentiment.POSITIVE, Sentiment.NEGATIVE],
        )
        assert calculate_sentiment_ratio(history) == 0.333
        assert calculate_sentiment_ratio(series([100.0] * 3)) == 0.0


# ============================================================
# FEED METRICS
# ============================================================

class TestFeedMetrics:
    """Tests for media frequency, influence and reach."""

    def test_media_frequency(self):
        feed = [
            feed_event(days_ago=1),
            feed_event(days_ago=40),
            feed_event(entity_id="other"),
            FeedEvent(
                id="x", entity_id="e1", source_id="s", source_name="n", headline="h",
                sentiment=Sentiment.NEUTRAL, impact=0.1, timestamp="yesterday-ish",
            ),
        ]
        assert calculate_media_frequency(feed, "e1", now=NOW) == 1

    def test_influence_score(self):
        sources = [
            Source(id="a", name="A", weight=3.0),
            Source(id="b", name="B", weight=1.0, active=False),
        ]
        feed = [feed_event(days_ago=i) for i in range(10)]
        assert calculate_influence_score(series([110.0]), sources, feed) == 80.0

    def test_influence_score_defaults(self):
        assert calculate_influence_score([], [], []) == 60.0

    def test_influence_counts_only_the_entity_coverage(self):
        feed = [feed_event("other", days_ago=1) for _ in range(19)] + [feed_event(days_ago=2)]
        metrics = calculate_all_metrics(
            "e1", series([100.0]), feed, [Source(id="a", name="A", weight=3.0)], now=NOW
        )
        assert metrics.influence_score == 81.0

    def test_audience_reach(self):
        feed = [feed_event(impact=0.5), feed_event(impact=1.2, days_ago=2), feed_event("other", impact=3.0)]
        assert calculate_audience_reach(feed, "e1") == 1700

    def test_all_metrics(self, rising):
        feed = [feed_event(days_ago=1), feed_event("other")]
        metrics = calculate_all_metrics("e1", rising, feed, [Source(id="a", name="A")], now=NOW)

        assert metrics.momentum == 7.0
        assert metrics.media_frequency == 1
        assert metrics.predicted_score == 120.0
        assert metrics.prediction_trend == "rising"
        data = metrics.to_dict()
        assert data["moving_averages"]["sma7"] == 110.0
        assert set(data["sentiment_breakdown"]) == {"positive", "negative", "neutral"}


# ============================================================
# SUMMARY
# ============================================================

class TestAnalyticsSummary:
    """Tests for calculate_analytics_summary()."""

    def test_summary(self):
        feed = [
            feed_event(source_name="A", sentiment=Sentiment.POSITIVE),
            feed_event(source_name="B", sentiment=Sentiment.NEGATIVE, days_ago=2),
            feed_event(source_name="A", sentiment=Sentiment.POSITIVE, days_ago=3),
            feed_event(source_name="B", sentiment=Sentiment.NEUTRAL, days_ago=4),
        ]
        entities = [
            Entity(id="1", name="Small", trend=1.0),
            Entity(id="2", name="Faller", trend=-2.5),
            Entity(id="3", name="Riser", trend=2.5),
        ]

        summary = calculate_analytics_summary(feed, entities)

        assert summary.total_events == 4
        assert summary.avg_sentiment == 0.25
        assert summary.most_influential_source == "A"
        assert summary.top_mover_name == "Faller"
        assert summary.top_mover_change == -2.5
        assert summary.media_share == [("A", 2), ("B", 2)]

    def test_empty_summary(self):
        summary = calculate_analytics_summary([], [])
        data = summary.to_dict()
        assert data["most_influential_source"] == "Unknown"
        assert data["top_mover"] == {"name": "None", "change": 0.0}
        assert data["media_share"] == []
