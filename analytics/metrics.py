"""
Analytics - Score Series Metrics.

============================================================
RESPONSIBILITY
============================================================
Derives analytics from an entity's HistoryPoint series.

- Volatility, momentum and trend strength
- Linear-regression prediction with confidence
- Simple and exponential moving averages
- Sentiment breakdown and ratio
- Media frequency, influence and audience reach

============================================================
DEGENERATE INPUT
============================================================

Every function is pure and NEVER raises on sparse data.
An empty or too-short series returns the documented default
(0, the baseline score, or an all-zero breakdown).

Placeholder points (no date) are skipped by the time-based
metrics: volatility and momentum.

============================================================
"""

import math
import statistics
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from core.clock import now_utc, parse_timestamp
from core.constants import BASELINE_SCORE, PREDICTION_MAX_SCORE, PREDICTION_MIN_SCORE
from core.models import FeedEvent, HistoryPoint, Sentiment, Source


# =============================================================
# CONSTANTS
# =============================================================

MOMENTUM_WINDOW = 7
REGRESSION_WINDOW = 14
MIN_REGRESSION_POINTS = 7
PREDICTION_HORIZON = 7
TREND_THRESHOLD = 0.5
MIN_CONSISTENCY_POINTS = 5
SMA_PERIODS = (7, 14, 30)
EMA_PERIOD = 12
MEDIA_FREQUENCY_DAYS = 30
INFLUENCE_FEED_SAMPLE = 20
REACH_PER_IMPACT = 1000


# =============================================================
# RESULT TYPES
# =============================================================

@dataclass(frozen=True)
class Prediction:
    """Forecast of the score PREDICTION_HORIZON steps ahead."""
    value: float
    confidence: float
    trend: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MovingAverages:
    sma7: float
    sma14: float
    sma30: float
    ema12: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SentimentBreakdown:
    """Percentage share of each sentiment label (1 decimal)."""
    positive: float = 0.0
    negative: float = 0.0
    neutral: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AdvancedMetrics:
    """Every per-entity metric in one record."""
    volatility: float
    momentum: float
    sentiment_ratio: float
    media_frequency: int
    influence_score: float
    audience_reach: int
    trend_strength: float
    consistency_score: float
    predicted_score: float
    prediction_confidence: float
    prediction_trend: str
    moving_averages: MovingAverages
    sentiment_breakdown: SentimentBreakdown

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================
# HELPERS
# =============================================================

def _scores(history: Sequence[HistoryPoint]) -> list[float]:
    return [float(point.score) for point in history]


def _timed_scores(history: Sequence[HistoryPoint]) -> list[float]:
    return [
        float(point.score)
        for point in history
        if not point.is_placeholder and parse_timestamp(point.time) is not None
    ]


def _regression(values: Sequence[float]) -> tuple[float, float, float]:
    """
    Least-squares fit of values against their index.

    Returns (slope, intercept, r_squared). r_squared is 0 when either
    series has no variance.
    """
    n = len(values)
    xs = range(n)
    sum_x = sum(xs)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_xx = sum(x * x for x in xs)
    sum_yy = sum(y * y for y in values)

    denominator = n * sum_xx - sum_x ** 2
    if denominator == 0:
        return 0.0, (sum_y / n if n else 0.0), 0.0

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    correlation_denominator = math.sqrt(denominator * (n * sum_yy - sum_y ** 2))
    if correlation_denominator == 0:
        return slope, intercept, 0.0
    r = (n * sum_xy - sum_x * sum_y) / correlation_denominator
    return slope, intercept, r * r


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# =============================================================
# SERIES METRICS
# =============================================================

def calculate_volatility(history: Sequence[HistoryPoint]) -> float:
    """Population standard deviation of dated scores (0 below 2 points)."""
    scores = _timed_scores(history)
    if len(scores) < 2:
        return 0.0
    return statistics.pstdev(scores)


def calculate_momentum(history: Sequence[HistoryPoint]) -> float:
    """Mean of the last 7 dated scores minus the mean of the 7 before."""
    scores = _timed_scores(history)
    if len(scores) < MOMENTUM_WINDOW * 2:
        return 0.0
    recent = scores[-MOMENTUM_WINDOW:]
    previous = scores[-MOMENTUM_WINDOW * 2:-MOMENTUM_WINDOW]
    return round(statistics.fmean(recent) - statistics.fmean(previous), 2)


def calculate_trend_strength(history: Sequence[HistoryPoint]) -> float:
    """|slope * R^2| over the last 14 scores (0 below 7 points)."""
    scores = _scores(history)[-REGRESSION_WINDOW:]
    if len(scores) < MIN_REGRESSION_POINTS:
        return 0.0
    slope, _, r_squared = _regression(scores)
    return round(abs(slope * r_squared), 3)


def calculate_prediction(history: Sequence[HistoryPoint]) -> Prediction:
    """
    Extrapolate the regression line 7 steps past the latest point.

    The value is clamped into [PREDICTION_MIN_SCORE, PREDICTION_MAX_SCORE]; the
    confidence is 100 minus the RMS residual, clamped to [0, 100].
    """
    scores = _scores(history)[-REGRESSION_WINDOW:]
    if len(scores) < MIN_REGRESSION_POINTS:
        return Prediction(value=BASELINE_SCORE, confidence=0.0, trend="stable")

    slope, intercept, _ = _regression(scores)
    target = len(scores) - 1 + PREDICTION_HORIZON
    value = _clamp(slope * target + intercept, PREDICTION_MIN_SCORE, PREDICTION_MAX_SCORE)

    residuals = [
        (score - (slope * index + intercept)) ** 2
        for index, score in enumerate(scores)
    ]
    rmse = math.sqrt(sum(residuals) / len(residuals))
    confidence = _clamp(100 - rmse, 0.0, 100.0)

    if slope > TREND_THRESHOLD:
        trend = "rising"
    elif slope < -TREND_THRESHOLD:
        trend = "falling"
    else:
        trend = "stable"

    return Prediction(value=round(value, 2), confidence=round(confidence, 1), trend=trend)


def calculate_consistency_score(history: Sequence[HistoryPoint]) -> float:
    """100 minus the coefficient of variation in percent (0 below 5 points)."""
    scores = _scores(history)
    if len(scores) < MIN_CONSISTENCY_POINTS:
        return 0.0
    mean = statistics.fmean(scores)
    if mean == 0:
        return 0.0
    variation = statistics.pstdev(scores) / abs(mean)
    return round(max(0.0, 100 - variation * 100), 2)


# =============================================================
# MOVING AVERAGES
# =============================================================

def calculate_sma(history: Sequence[HistoryPoint], period: int) -> float:
    """Mean of the last `period` scores, or the latest score if too short."""
    scores = _scores(history)
    if not scores:
        return BASELINE_SCORE
    if period <= 0 or len(scores) < period:
        return round(scores[-1], 2)
    return round(statistics.fmean(scores[-period:]), 2)


def calculate_ema(history: Sequence[HistoryPoint], period: int = EMA_PERIOD) -> float:
    """Exponential moving average seeded with the first score."""
    scores = _scores(history)
    if not scores:
        return BASELINE_SCORE
    multiplier = 2 / (period + 1)
    ema = scores[0]
    for score in scores[1:]:
        ema = (score - ema) * multiplier + ema
    return round(ema, 2)


def calculate_moving_averages(history: Sequence[HistoryPoint]) -> MovingAverages:
    sma7, sma14, sma30 = (calculate_sma(history, period) for period in SMA_PERIODS)
    return MovingAverages(
        sma7=sma7,
        sma14=sma14,
        sma30=sma30,
        ema12=calculate_ema(history, EMA_PERIOD),
    )


# =============================================================
# SENTIMENT
# =============================================================

def calculate_sentiment_breakdown(history: Sequence[HistoryPoint]) -> SentimentBreakdown:
    """Untagged points count as neutral."""
    if not history:
        return SentimentBreakdown()

    total = len(history)
    positive = sum(1 for point in history if point.sentiment is Sentiment.POSITIVE)
    negative = sum(1 for point in history if point.sentiment is Sentiment.NEGATIVE)
    neutral = total - positive - negative

    return SentimentBreakdown(
        positive=round(positive / total * 100, 1),
        negative=round(negative / total * 100, 1),
        neutral=round(neutral / total * 100, 1),
    )


def calculate_sentiment_ratio(history: Sequence[HistoryPoint]) -> float:
    """(positive - negative) / (positive + negative); 0 without tagged points."""
    positive = sum(1 for point in history if point.sentiment is Sentiment.POSITIVE)
    negative = sum(1 for point in history if point.sentiment is Sentiment.NEGATIVE)
    if positive + negative == 0:
        return 0.0
    return round((positive - negative) / (positive + negative), 3)


# =============================================================
# FEED-BASED METRICS
# =============================================================

def calculate_media_frequency(
    feed: Sequence[FeedEvent],
    entity_id: str,
    now: Optional[datetime] = None,
) -> int:
    """Number of feed events about the entity in the last 30 days."""
    cutoff = (now or now_utc()) - timedelta(days=MEDIA_FREQUENCY_DAYS)
    count = 0
    for event in feed:
        if event.entity_id != entity_id:
            continue
        stamp = parse_timestamp(event.timestamp)
        if stamp is not None and stamp >= cutoff:
            count += 1
    return count


def calculate_influence_score(
    history: Sequence[HistoryPoint],
    sources: Sequence[Source],
    feed: Sequence[FeedEvent],
) -> float:
    """
    Weighted blend of latest score (50%), average active source
    weight (30%) and recent coverage volume (20%), scaled to 0-100.

    `feed` is the entity's own feed; coverage counts its newest
    events up to the sample size.
    """
    latest = history[-1].score if history else BASELINE_SCORE
    if sources:
        average_weight = sum(s.weight for s in sources if s.active) / len(sources)
    else:
        average_weight = 1.0
    coverage = min(len(feed[:INFLUENCE_FEED_SAMPLE]), INFLUENCE_FEED_SAMPLE)

    score = (
        (latest / 100) * 0.5
        + (average_weight / 3) * 0.3
        + (coverage / INFLUENCE_FEED_SAMPLE) * 0.2
    )
    return round(score * 100, 2)


def calculate_audience_reach(feed: Sequence[FeedEvent], entity_id: str) -> int:
    """Rough reach estimate: 1000 readers per unit of impact."""
    return int(round(sum(
        event.impact * REACH_PER_IMPACT
        for event in feed
        if event.entity_id == entity_id
    )))


# =============================================================
# AGGREGATE
# =============================================================

def calculate_all_metrics(
    entity_id: str,
    history: Sequence[HistoryPoint],
    feed: Sequence[FeedEvent],
    sources: Sequence[Source],
    now: Optional[datetime] = None,
) -> AdvancedMetrics:
    """Compute every metric for one entity."""
    entity_feed = [event for event in feed if event.entity_id == entity_id]
    prediction = calculate_prediction(history)

    return AdvancedMetrics(
        volatility=calculate_volatility(history),
        momentum=calculate_momentum(history),
        sentiment_ratio=calculate_sentiment_ratio(history),
        media_frequency=calculate_media_frequency(feed, entity_id, now),
        influence_score=calculate_influence_score(history, sources, entity_feed),
        audience_reach=calculate_audience_reach(feed, entity_id),
        trend_strength=calculate_trend_strength(history),
        consistency_score=calculate_consistency_score(history),
        predicted_score=prediction.value,
        prediction_confidence=prediction.confidence,
        prediction_trend=prediction.trend,
        moving_averages=calculate_moving_averages(history),
        sentiment_breakdown=calculate_sentiment_breakdown(history),
    )
