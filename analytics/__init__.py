"""
Analytics - Metrics over reconstructed score histories.

Usage:
    from analytics import calculate_all_metrics, calculate_analytics_summary

    metrics = calculate_all_metrics(entity.id, entity.history, feed, sources)
    summary = calculate_analytics_summary(feed, entities)

All functions are pure and return their degenerate default on
empty or short input instead of raising.
"""

from analytics.metrics import (
    AdvancedMetrics,
    MovingAverages,
    Prediction,
    SentimentBreakdown,
    calculate_all_metrics,
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
from analytics.summary import AnalyticsSummary, calculate_analytics_summary


__all__ = [
    # Result types
    "AdvancedMetrics",
    "AnalyticsSummary",
    "MovingAverages",
    "Prediction",
    "SentimentBreakdown",

    # Series metrics
    "calculate_consistency_score",
    "calculate_momentum",
    "calculate_prediction",
    "calculate_trend_strength",
    "calculate_volatility",

    # Moving averages
    "calculate_ema",
    "calculate_moving_averages",
    "calculate_sma",

    # Sentiment
    "calculate_sentiment_breakdown",
    "calculate_sentiment_ratio",

    # Feed metrics
    "calculate_audience_reach",
    "calculate_influence_score",
    "calculate_media_frequency",

    # Aggregate
    "calculate_all_metrics",
    "calculate_analytics_summary",
]
