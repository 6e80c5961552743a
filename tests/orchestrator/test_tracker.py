"""
Tests for the Tracker orchestrator.

============================================================
PURPOSE
============================================================
Covers:
1. Start-up seeding and shutdown
2. Weighted live event application
3. History / portrait backfill
4. Entity add / refresh
5. Source suggestion review
6. Analytics and enrichment passthroughs

============================================================
"""

import asyncio
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from analytics import AdvancedMetrics
from core.config import TrackerConfig
from core.models import (
    DiscoveredSource,
    Entity,
    FeedEvent,
    HistoryPoint,
    ProviderKind,
    Sentiment,
    SimulationConfig,
    Source,
    default_sources,
)
from database.store import PersistentStore
from orchestrator import Tracker
from providers.schemas import EventPayload
from scheduler import FetchScheduler


PORTRAIT = "https://upload.wikimedia.org/portrait.jpg"


# ============================================================
# FIXTURES
# ============================================================

class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def provider():
    provider = MagicMock()
    provider.name = "Mock"
    provider.kind = ProviderKind.GEMINI
    provider.is_configured = True
    provider.fetch_history = AsyncMock(return_value=[
        HistoryPoint(time="2026-02-01", score=101.0),
        HistoryPoint(time="2026-02-10", score=103.0),
    ])
    provider.fetch_image = AsyncMock(return_value=PORTRAIT)
    provider.fetch_suggested_sources = AsyncMock(return_value=[])
    return provider


@pytest.fixture
def factory(provider):
    factory = MagicMock()
    factory.get_provider.return_value = provider
    factory.close = AsyncMock()
    factory.get_stats.return_value = {}
    return factory


@pytest.fixture
def news_fetcher():
    fetcher = MagicMock()
    fetcher.fetch_event = AsyncMock(return_value=EventPayload(
        headline="Rally draws thousands",
        source_name="Daily Nation",
        sentiment="positive",
        impact=1.0,
        source_url="https://nation.africa/rally",
    ))
    fetcher.close = AsyncMock()
    return fetcher


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def store():
    store = PersistentStore()
    store.set_sources(default_sources())
    return store


@pytest.fixture
def tracker(store, factory, news_fetcher, sleep):
    return Tracker(store, factory, news_fetcher, sleep=sleep, rng=random.Random(7))


def live_event(source_name="Daily Nation", sentiment=Sentiment.POSITIVE, impact=1.0):
    return FeedEvent(
        id="f1",
        entity_id="e1",
        source_id="hourly-schedule",
        source_name=source_name,
        headline="h",
        sentiment=sentiment,
        impact=impact,
        timestamp="2026-03-01T10:00:00Z",
    )


# ============================================================
# LIFECYCLE
# ============================================================

class TestLifecycle:
    """Tests for start / stop."""

    @pytest.mark.asyncio
    async def test_start_seeds_empty_store(self, factory, news_fetcher):
        store = PersistentStore()
        config = TrackerConfig(history_window_days=30)
        tracker = Tracker(store, factory, news_fetcher, config=config)

        await tracker.start(background=False)

        assert tracker.is_running
        assert [s.name for s in store.get_sources()] == [s.name for s in default_sources()]
        assert store.get_config().history_window_days == 30

        await tracker.stop()
        assert not tracker.is_running
        factory.close.assert_awaited_once()
        news_fetcher.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_background_start_runs_scheduler_and_loops(self, store, factory, news_fetcher):
        scheduler = MagicMock()
        scheduler.start = AsyncMock()
        scheduler.is_running = False
        tracker = Tracker(store, factory, news_fetcher, scheduler=scheduler)

        await tracker.start()
        assert scheduler.on_event == tracker.apply_event
        scheduler.start.assert_awaited_once()
        assert len(tracker._tasks) == 3

        await tracker.stop()
        scheduler.stop.assert_called_once()
        assert tracker._tasks == []

    @pytest.mark.asyncio
    async def test_paused_config_keeps_scheduler_idle(self, store, factory, news_fetcher):
        store.set_config(SimulationConfig(is_paused=True))
        store.load = AsyncMock(return_value=True)
        scheduler = MagicMock()
        scheduler.start = AsyncMock()
        tracker = Tracker(store, factory, news_fetcher, scheduler=scheduler)

        await tracker.start()
        await tracker.stop()

        scheduler.start.assert_not_awaited()

    def test_pausing_stops_scheduler(self, store, factory, news_fetcher):
        scheduler = MagicMock()
        scheduler.is_running = True
        tracker = Tracker(store, factory, news_fetcher, scheduler=scheduler)

        tracker.update_config(SimulationConfig(is_paused=True))

        scheduler.stop.assert_called_once()
        assert store.get_config().is_paused

    @pytest.mark.asyncio
    async def test_unpausing_restarts_scheduler(self, store, factory, news_fetcher):
        scheduler = FetchScheduler(store, factory.get_provider, fetch_event=AsyncMock(return_value=None))
        tracker = Tracker(store, factory, news_fetcher, scheduler=scheduler)

        await tracker.start()
        try:
            assert scheduler.is_running

            tracker.update_config(SimulationConfig(is_paused=True))
            assert not scheduler.is_running

            tracker.update_config(SimulationConfig(is_paused=False))
            await asyncio.sleep(0)

            assert scheduler.is_running
        finally:
            await tracker.stop()

    @pytest.mark.asyncio
    async def test_unpausing_after_paused_start(self, store, factory, news_fetcher):
        store.set_config(SimulationConfig(is_paused=True))
        store.load = AsyncMock(return_value=True)
        scheduler = FetchScheduler(store, factory.get_provider, fetch_event=AsyncMock(return_value=None))
        tracker = Tracker(store, factory, news_fetcher, scheduler=scheduler)

        await tracker.start()
        try:
            assert not scheduler.is_running

            tracker.update_config(SimulationConfig(is_paused=False))
            await asyncio.sleep(0)

            assert scheduler.is_running
        finally:
            await tracker.stop()

    def test_unpausing_without_background_does_not_start(self, store, factory, news_fetcher):
        store.set_config(SimulationConfig(is_paused=True))
        scheduler = MagicMock()
        scheduler.start = AsyncMock()
        tracker = Tracker(store, factory, news_fetcher, scheduler=scheduler)

        tracker.update_config(SimulationConfig(is_paused=False))

        scheduler.start.assert_not_called()


# ============================================================
# LIVE EVENTS
# ============================================================

class TestApplyEvent:
    """Tests for apply_event() and step()."""

    def test_source_weight_scales_impact(self, tracker, store):
        store.add_entity(Entity(id="e1", name="Jane Doe"))

        updated = tracker.apply_event(live_event("Daily Nation"))

        assert updated.score == 102.5
        assert store.get_entity("e1").score == 102.5
        assert store.get_entity("e1").history[-1].score == 102.5
        assert store.get_feed() == []

    def test_unknown_or_inactive_source_weighs_one(self, tracker, store):
        store.add_entity(Entity(id="e1", name="Jane Doe"))
        store.update_source("s3", active=False)

        tracker.apply_event(live_event("Unlisted Blog", Sentiment.NEGATIVE))
        tracker.apply_event(live_event("The Standard", Sentiment.NEGATIVE))

        assert store.get_entity("e1").score == 98.0

    def test_unknown_entity_ignored(self, tracker):
        assert tracker.apply_event(live_event()) is None

    def test_stored_entity_not_mutated_in_place(self, tracker, store):
        original = Entity(id="e1", name="Jane Doe")
        store.add_entity(original)

        tracker.apply_event(live_event())

        assert original.score == 100.0
        assert original.history == []

    @pytest.mark.asyncio
    async def test_step_records_live_event(self, tracker, store):
        store.add_entity(Entity(id="e1", name="Jane Doe"))

        event = await tracker.step()

        assert event.source_id == "gemini-live"
        assert store.get_feed()[0].id == event.id
        assert store.get_entity("e1").score == 102.5
        assert tracker.get_stats()["live_steps"] == 1

    @pytest.mark.asyncio
    async def test_step_without_event(self, tracker, store, news_fetcher):
        store.add_entity(Entity(id="e1", name="Jane Doe"))
        news_fetcher.fetch_event.return_value = None

        assert await tracker.step() is None
        assert store.get_feed() == []


# ============================================================
# ENTITIES
# ============================================================

class TestEntities:
    """Tests for backfill / add / refresh / remove."""

    @pytest.mark.asyncio
    async def test_backfill_targets_missing_history_or_portrait(self, tracker, store, provider, sleep):
        dated = [HistoryPoint(time="2026-01-05", score=100.5)]
        store.add_entity(Entity(id="a", name="No History", image=""))
        store.add_entity(Entity(id="b", name="Complete", history=list(dated), image="https://cdn.ke/b.jpg"))
        store.add_entity(Entity(id="c", name="No Portrait", history=list(dated), image=""))

        updated = await tracker.backfill_history()

        assert updated == 2
        assert provider.fetch_history.await_count == 1
        assert provider.fetch_image.await_count == 2
        assert sleep.delays == [2.0]

        assert store.get_entity("a").score == 103.0
        assert store.get_entity("a").history[-1].score == 103.0
        assert store.get_entity("c").image == PORTRAIT
        assert store.get_entity("c").history == dated
        assert store.get_entity("b").image == "https://cdn.ke/b.jpg"

    @pytest.mark.asyncio
    async def test_backfill_nothing_to_do(self, tracker, store, provider):
        store.add_entity(Entity(
            id="b", name="Complete",
            history=[HistoryPoint(time="2026-01-05", score=100.0)],
            image="https://cdn.ke/b.jpg",
        ))
        assert await tracker.backfill_history() == 0
        provider.fetch_history.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_history_leaves_entity(self, tracker, store, provider):
        provider.fetch_history.return_value = None
        provider.fetch_image.return_value = None
        store.add_entity(Entity(id="a", name="No History", score=104.0))

        assert await tracker.backfill_history() == 0
        assert store.get_entity("a").score == 104.0

    @pytest.mark.asyncio
    async def test_add_entity_enriches(self, tracker, store, provider):
        assert await tracker.add_entity(Entity(id="n", name="New Aspirant"))

        entity = store.get_entity("n")
        assert entity.score == 103.0
        assert entity.image == PORTRAIT

    @pytest.mark.asyncio
    async def test_add_duplicate_name_refused(self, tracker, store, provider):
        store.add_entity(Entity(id="a", name="Jane Doe"))

        assert not await tracker.add_entity(Entity(id="b", name="Jane Doe"))
        provider.fetch_history.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refresh_entity(self, tracker, store):
        store.add_entity(Entity(id="e1", name="Jane Doe"))

        event = await tracker.refresh_entity("e1")

        assert event.source_id == "gemini-manual"
        assert store.get_feed()[0].id == event.id
        assert store.get_entity("e1").image == PORTRAIT
        assert await tracker.refresh_entity("missing") is None

    def test_remove_entity(self, tracker, store):
        store.add_entity(Entity(id="e1", name="Jane Doe"))
        assert tracker.remove_entity("e1")
        assert not tracker.remove_entity("e1")


# ============================================================
# SOURCES
# ============================================================

class TestSourceReview:
    """Tests for scan / accept / reject."""

    @pytest.mark.asyncio
    async def test_provider_suggestions_deduplicated(self, tracker, store, provider):
        provider.fetch_suggested_sources.return_value = [
            Source(id="x", name="KBC", weight=2.0),
            Source(id="y", name="daily nation"),
        ]

        added = await tracker.scan_for_sources()

        assert [s.name for s in added] == ["KBC"]
        assert added[0].id.startswith("p-")
        assert store.get_potential_sources() == added

        assert await tracker.scan_for_sources() == []

    @pytest.mark.asyncio
    async def test_accept_potential_source(self, tracker, store, provider):
        provider.fetch_suggested_sources.return_value = [Source(id="x", name="KBC", weight=2.0)]
        suggestion = (await tracker.scan_for_sources())[0]

        accepted = tracker.accept_source(suggestion.id)

        assert accepted.id.startswith("s-")
        assert accepted.weight == 2.0
        assert accepted in store.get_sources()
        assert store.get_potential_sources() == []

    @pytest.mark.asyncio
    async def test_discovered_source_accept_marks_domain(self, store, factory, news_fetcher):
        store.add_discovered_source(DiscoveredSource(domain="newblog.co.ke", name="newblog.co.ke", seen_count=3))
        discovery = MagicMock()
        discovery.run = AsyncMock(return_value=[Source(id="auto-newblog.co.ke", name="newblog.co.ke")])
        tracker = Tracker(store, factory, news_fetcher, source_discovery=discovery)

        added = await tracker.scan_for_sources(force=True)
        discovery.run.assert_awaited_once()
        assert discovery.run.await_args.kwargs == {"force": True}
        assert [s.id for s in added] == ["auto-newblog.co.ke"]

        accepted = tracker.accept_source("auto-newblog.co.ke")

        assert accepted.name == "newblog.co.ke"
        assert store.get_discovered_source("newblog.co.ke").accepted
        assert not tracker.reject_source("auto-newblog.co.ke")

    def test_accept_name_clash_leaves_state(self, tracker, store):
        clash = Source(id="p-1", name="Daily Nation", weight=1.5)
        store.set_potential_sources([clash])
        store.add_discovered_source(DiscoveredSource(domain="nation.africa", name="Daily Nation"))
        before = len(store.get_sources())

        assert tracker.accept_source("p-1") is None
        assert tracker.accept_source("auto-nation.africa") is None

        assert len(store.get_sources()) == before
        assert store.get_potential_sources() == [clash]
        assert not store.get_discovered_source("nation.africa").accepted

    def test_reject_discovered_domain(self, tracker, store):
        store.add_discovered_source(DiscoveredSource(domain="spam.example", name="spam.example"))

        assert tracker.reject_source("spam.example")
        assert store.get_discovered_source("spam.example").rejected
        assert not tracker.reject_source("spam.example")

    def test_unknown_ids(self, tracker):
        assert tracker.accept_source("nope") is None
        assert not tracker.reject_source("nope")


# ============================================================
# ANALYTICS / ENRICHMENT
# ============================================================

class TestPassthroughs:
    """Tests for metrics, profiles and aspirants."""

    def test_metrics_for(self, tracker, store):
        store.add_entity(Entity(id="e1", name="Jane Doe"))
        assert isinstance(tracker.metrics_for("e1"), AdvancedMetrics)
        assert tracker.metrics_for("missing") is None

    def test_analytics_summary(self, tracker, store):
        store.add_feed_event(live_event())
        assert tracker.analytics_summary().total_events == 1

    @pytest.mark.asyncio
    async def test_update_profile_applies_changes(self, store, factory, news_fetcher):
        store.add_entity(Entity(id="e1", name="Jane Doe", party="UDA"))
        updater = MagicMock()
        updater.update = AsyncMock(return_value={"party": "DCP"})
        tracker = Tracker(store, factory, news_fetcher, profile_updater=updater)

        assert await tracker.update_profile("e1", force=True)
        assert store.get_entity("e1").party == "DCP"
        assert updater.update.await_args.kwargs == {"force": True}

        updater.update.return_value = None
        assert not await tracker.update_profile()
        assert not await tracker.update_profile("missing")

    @pytest.mark.asyncio
    async def test_sync_aspirants(self, store, factory, news_fetcher):
        aspirants = MagicMock()
        aspirants.sync = AsyncMock(return_value=[])
        aspirants.check_for_withdrawals = AsyncMock(return_value=[])
        tracker = Tracker(store, factory, news_fetcher, aspirant_discovery=aspirants)

        await tracker.sync_aspirants()

        _, on_add, on_remove = aspirants.sync.await_args.args
        assert on_add == tracker.add_entity
        assert on_remove == tracker.remove_entity
        aspirants.check_for_withdrawals.assert_awaited_once()
