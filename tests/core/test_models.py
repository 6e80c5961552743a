"""
Tests for Core Models, Clock and Exceptions.

============================================================
PURPOSE
============================================================
Covers:
1. Sentiment / SourceType coercion
2. Record serialization (to_dict / from_dict)
3. Feed event impact sign handling
4. Provider config cache keys
5. MockClock and timestamp parsing
6. Exception serialization

============================================================
"""

from datetime import datetime, timezone

import pytest

from core.clock import ClockFactory, MockClock, now_utc, parse_timestamp
from core.exceptions import InvalidConfigError, LegacyTierQuotaError, StorageTierError
from core.models import (
    AspirantRecord,
    AspirantStatus,
    Entity,
    FeedEvent,
    HistoryPoint,
    ProviderConfig,
    ProviderKind,
    ScheduleState,
    Sentiment,
    SimulationConfig,
    Source,
    SourceType,
    default_sources,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def sample_entity():
    """Entity with one placeholder and one dated point."""
    return Entity(
        id="e1",
        name="Jane Doe",
        role="Governor",
        party="UDA",
        score=101.5,
        trend=1.5,
        history=[
            HistoryPoint(time="", score=100.0),
            HistoryPoint(
                time="2026-01-02",
                score=101.5,
                reason="Rally",
                source_url="https://example.com/a",
                sentiment=Sentiment.POSITIVE,
            ),
        ],
    )


# ============================================================
# ENUM TESTS
# ============================================================

class TestSentiment:
    """Tests for the closed sentiment set."""

    def test_coerce_known_labels(self):
        assert Sentiment.coerce("Positive") == Sentiment.POSITIVE
        assert Sentiment.coerce(" negative ") == Sentiment.NEGATIVE

    def test_coerce_unknown_is_neutral(self):
        assert Sentiment.coerce("ecstatic") == Sentiment.NEUTRAL
        assert Sentiment.coerce(None) == Sentiment.NEUTRAL
        assert Sentiment.coerce(3) == Sentiment.NEUTRAL

    def test_sign(self):
        assert Sentiment.POSITIVE.sign == 1
        assert Sentiment.NEGATIVE.sign == -1
        assert Sentiment.NEUTRAL.sign == 0

    def test_source_type_coerce_defaults_to_news(self):
        assert SourceType.coerce("TV") == SourceType.TV
        assert SourceType.coerce("podcast") == SourceType.NEWS

    def test_exit_statuses(self):
        assert AspirantStatus.WITHDRAWN.is_exit
        assert AspirantStatus.STEPPED_DOWN.is_exit
        assert not AspirantStatus.CONFIRMED.is_exit


# ============================================================
# RECORD TESTS
# ============================================================

class TestEntity:
    """Tests for entity records."""

    def test_round_trip(self, sample_entity):
        restored = Entity.from_dict(sample_entity.to_dict())
        assert restored == sample_entity

    def test_has_real_history(self, sample_entity):
        assert sample_entity.has_real_history
        placeholder_only = Entity(id="e2", name="X", history=[HistoryPoint(time="", score=100.0)])
        assert not placeholder_only.has_real_history

    def test_from_dict_tolerates_missing_optional_keys(self):
        entity = Entity.from_dict({"id": 7, "name": "Legacy"})
        assert entity.id == "7"
        assert entity.score == 100.0
        assert entity.history == []
        assert entity.profile_changes == []

    def test_history_point_without_time_is_placeholder(self):
        point = HistoryPoint.from_dict({"score": 99})
        assert point.is_placeholder
        assert point.sentiment is None


class TestFeedEvent:
    """Tests for feed events."""

    def test_negative_impact_is_normalized(self):
        event = FeedEvent(
            id="f1", entity_id="e1", source_id="s1", source_name="Daily Nation",
            headline="h", sentiment=Sentiment.NEGATIVE, impact=-1.2, timestamp="t",
        )
        assert event.impact == 1.2
        assert event.signed_impact == -1.2

    def test_neutral_has_no_effect(self):
        event = FeedEvent(
            id="f1", entity_id="e1", source_id="s1", source_name="x",
            headline="h", sentiment=Sentiment.NEUTRAL, impact=2.0, timestamp="t",
        )
        assert event.signed_impact == 0

    def test_round_trip(self):
        event = FeedEvent(
            id="f1", entity_id="e1", source_id="s1", source_name="x",
            headline="h", sentiment=Sentiment.POSITIVE, impact=0.5,
            timestamp="2026-01-01T00:00:00+00:00", url="https://example.com",
        )
        assert FeedEvent.from_dict(event.to_dict()) == event


class TestSourceAndConfig:
    """Tests for sources and configuration records."""

    def test_source_weight_must_be_positive(self):
        with pytest.raises(ValueError):
            Source(id="s", name="Bad", weight=0)

    def test_default_sources(self):
        sources = default_sources()
        assert len(sources) == 6
        assert len({s.id for s in sources}) == 6
        assert all(s.weight > 0 for s in sources)

    def test_cache_key_changes_with_any_field(self):
        base = ProviderConfig()
        assert base.cache_key() == ProviderConfig().cache_key()
        changed = ProviderConfig(ollama_model="mistral")
        assert base.cache_key() != changed.cache_key()

    def test_simulation_config_round_trip(self):
        config = SimulationConfig(
            is_paused=True,
            provider=ProviderConfig(provider=ProviderKind.OLLAMA),
        )
        assert SimulationConfig.from_dict(config.to_dict()) == config

    def test_schedule_state_defaults(self):
        state = ScheduleState.from_dict({})
        assert state.run_count == 0
        assert state.interval_minutes == 60
        assert not state.enabled

    def test_aspirant_record_round_trip(self):
        record = AspirantRecord(
            name="A", party="ODM", role="Presidential Aspirant",
            status=AspirantStatus.CONFIRMED, first_seen="t1", last_seen="t2",
        )
        assert AspirantRecord.from_dict(record.to_dict()) == record


# ============================================================
# CLOCK TESTS
# ============================================================

class TestClock:
    """Tests for the clock abstraction."""

    def test_mock_clock_drives_now_utc(self):
        start = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        with ClockFactory.use_mock(start) as clock:
            assert now_utc() == start
            clock.advance(hours=2)
            assert now_utc() == datetime(2026, 3, 1, 14, 0, tzinfo=timezone.utc)

    def test_mock_clock_assumes_utc(self):
        clock = MockClock(datetime(2026, 1, 1))
        assert clock.now().tzinfo == timezone.utc

    def test_parse_timestamp_variants(self):
        assert parse_timestamp("2026-01-05") == datetime(2026, 1, 5, tzinfo=timezone.utc)
        assert parse_timestamp("2026-01-05T10:00:00Z").hour == 10
        assert parse_timestamp("") is None
        assert parse_timestamp("last tuesday") is None
        assert parse_timestamp(None) is None


# ============================================================
# EXCEPTION TESTS
# ============================================================

class TestExceptions:
    """Tests for exception serialization."""

    def test_storage_tier_error_context(self):
        error = StorageTierError("write failed", tier="sql", collection="feed")
        data = error.to_dict()
        assert data["type"] == "StorageTierError"
        assert data["context"] == {"tier": "sql", "collection": "feed"}
        assert "tier=sql" in error.to_log_format()

    def test_quota_error_is_tier_error(self):
        error = LegacyTierQuotaError(size_bytes=10, max_bytes=5)
        assert isinstance(error, StorageTierError)
        assert error.context["tier"] == "legacy"

    def test_invalid_config_error(self):
        error = InvalidConfigError("TRACKER_PROVIDER", "bogus", "unknown provider")
        assert not error.recoverable
        assert error.context["config_key"] == "TRACKER_PROVIDER"
