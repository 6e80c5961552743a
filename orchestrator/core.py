"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
The Tracker coordinates every tracker component.

- Loads the store, seeds default sources, starts the scheduler
- Applies live events to entity scores
- Backfills history and portraits for entities that lack them
- Adds, removes and refreshes entities on request
- Reviews source suggestions (provider and web discovery)
- Runs the background loops: live step, profile updates,
  source discovery and aspirant sync

============================================================
ARCHITECTURAL POSITION
============================================================
- All state lives in the PersistentStore
- The Tracker never talks to a backend directly; it resolves
  the active provider from the factory on every call
- Background loop failures are logged, never propagated

============================================================
"""

import asyncio
import copy
import dataclasses
import json
import logging
import random
import sys
import uuid
from typing import Any, Awaitable, Callable, Optional

from analytics.metrics import AdvancedMetrics, calculate_all_metrics
from analytics.summary import AnalyticsSummary, calculate_analytics_summary
from core.clock import now_utc, to_iso8601
from core.config import TrackerConfig
from core.models import (
    CandidateContext,
    DiscoveredSource,
    Entity,
    FeedEvent,
    SimulationConfig,
    Source,
    default_sources,
)
from database.store import PersistentStore
from discovery.aspirants import AspirantDiscovery
from discovery.context import ContextGenerator
from discovery.profiles import ProfileUpdater
from discovery.sources import SourceDiscovery
from history.reconstruction import apply_feed_event, apply_history
from providers.base import BaseProvider
from providers.factory import ProviderFactory
from providers.image_finder import is_placeholder_image
from providers.news_fetcher import RealTimeNewsFetcher
from scheduler.fetch_scheduler import FetchScheduler


logger = logging.getLogger(__name__)


BACKFILL_DELAY_SECONDS = 2.0
PROFILE_UPDATE_INTERVAL_SECONDS = 60 * 60
MAINTENANCE_INTERVAL_SECONDS = 6 * 60 * 60
AUTO_DISCOVERED_PREFIX = "auto-"


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "json") -> logging.Logger:
    """
    Set up process logging on stdout.

    Args:
        level: Log level name
        log_format: Output format (json or text)

    Returns:
        The orchestrator logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("orchestrator")


# ============================================================
# TRACKER
# ============================================================

class Tracker:
    """
    Sentiment tracker runtime.

    Usage:
        tracker = Tracker(store, ProviderFactory(), RealTimeNewsFetcher())
        await tracker.start()
        await tracker.backfill_history()
        ...
        await tracker.stop()
    """

    def __init__(
        self,
        store: PersistentStore,
        factory: ProviderFactory,
        news_fetcher: RealTimeNewsFetcher,
        scheduler: Optional[FetchScheduler] = None,
        source_discovery: Optional[SourceDiscovery] = None,
        aspirant_discovery: Optional[AspirantDiscovery] = None,
        profile_updater: Optional[ProfileUpdater] = None,
        context_generator: Optional[ContextGenerator] = None,
        config: Optional[TrackerConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._config = config or TrackerConfig()
        self._store = store
        self._factory = factory
        self._news_fetcher = news_fetcher
        self._sleep = sleep
        self._rng = rng or random.Random()

        if scheduler is None:
            scheduler = FetchScheduler(
                store,
                self.active_provider,
                fetch_event=news_fetcher.fetch_event,
                interval_minutes=self._config.fetch_interval_minutes,
                inter_entity_delay=self._config.inter_entity_delay_seconds,
            )
        scheduler.on_event = self.apply_event
        self.scheduler = scheduler

        self.source_discovery = source_discovery
        self.aspirant_discovery = aspirant_discovery
        self.profile_updater = profile_updater or ProfileUpdater()
        self.context_generator = context_generator or ContextGenerator(store)

        self._running = False
        self._tasks: list[asyncio.Task] = []

        self._stats = {
            "events_applied": 0,
            "live_steps": 0,
            "backfilled": 0,
            "profile_updates": 0,
        }

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def store(self) -> PersistentStore:
        return self._store

    @property
    def is_running(self) -> bool:
        return self._running

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def start(self, background: bool = True) -> None:
        """
        Load state and start polling.

        Args:
            background: Start the scheduler and the live step and
                maintenance loops; False only loads and seeds state
        """
        if self._running:
            return

        loaded = await self._store.load()
        if not loaded:
            self._store.set_config(
                SimulationConfig(
                    history_window_days=self._config.history_window_days,
                    provider=self._config.provider,
                )
            )
        if not self._store.get_sources():
            self._store.set_sources(default_sources())
            logger.info("[tracker] Seeded default sources")

        self._running = True
        logger.info(
            f"[tracker] Started with {len(self._store.get_entities())} entities, "
            f"provider={self.active_provider().name}"
        )

        if background:
            if not self._store.get_config().is_paused:
                await self.scheduler.start()
            self._tasks = [
                asyncio.create_task(self._live_loop()),
                asyncio.create_task(self._profile_loop()),
                asyncio.create_task(self._maintenance_loop()),
            ]

    async def stop(self) -> None:
        """Stop loops and the scheduler, flush the store and close clients."""
        if not self._running:
            return
        self._running = False

        self.scheduler.stop()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

        await self._store.close()
        await self._factory.close()
        await self._news_fetcher.close()
        logger.info("[tracker] Stopped")

    # --------------------------------------------------------
    # Configuration
    # --------------------------------------------------------

    def active_provider(self) -> BaseProvider:
        return self._factory.get_provider(self._store.get_config().provider)

    def update_config(self, config: SimulationConfig) -> None:
        previous = self._store.get_config()
        self._store.set_config(config)
        if previous.provider.provider != config.provider.provider:
            logger.info(
                f"[tracker] Provider switched {previous.provider.provider.value} "
                f"-> {config.provider.provider.value}"
            )
        if config.is_paused and self.scheduler.is_running:
            self.scheduler.stop()
        elif not config.is_paused and previous.is_paused and self._tasks:
            # Background mode only; start() is a no-op when already running
            self._tasks.append(asyncio.create_task(self.scheduler.start()))
            logger.info("[tracker] Resumed scheduled fetching")

    # --------------------------------------------------------
    # Live events
    # --------------------------------------------------------

    def apply_event(self, event: FeedEvent) -> Optional[Entity]:
        """
        Apply a stored feed event to its entity's score.

        The event must already be in the feed; only the entity changes.
        """
        current = self._store.get_entity(event.entity_id)
        if current is None:
            logger.debug(f"[tracker] Event for unknown entity {event.entity_id} ignored")
            return None

        weight = next(
            (
                source.weight for source in self._store.get_sources()
                if source.active and source.name == event.source_name
            ),
            1.0,
        )

        updated = copy.deepcopy(current)
        change = apply_feed_event(updated, event, source_weight=weight)
        self._store.upsert_entity(updated)
        self._stats["events_applied"] += 1

        logger.debug(
            f"[tracker] {updated.name} {change:+.2f} -> {updated.score:.2f} "
            f"({event.source_name})"
        )
        return updated

    async def step(self) -> Optional[FeedEvent]:
        """Fetch and apply one live event for a random entity."""
        entities = self._store.get_entities()
        if not entities:
            return None

        entity = self._rng.choice(entities)
        provider = self.active_provider()
        payload = await self._news_fetcher.fetch_event(entity, provider, self._store.get_sources())
        if payload is None:
            return None

        event = payload.to_feed_event(
            entity.id, f"{provider.kind.value}-live", to_iso8601(now_utc())
        )
        self._record(event)
        self._stats["live_steps"] += 1
        return event

    def _record(self, event: FeedEvent) -> None:
        self._store.add_feed_event(event)
        self.apply_event(event)

    # --------------------------------------------------------
    # Entities
    # --------------------------------------------------------

    async def backfill_history(self) -> int:
        """
        Load history and portraits for entities missing them.

        Entities are processed one at a time with a pause in between.
        Returns the number of entities updated.
        """
        targets = [
            entity for entity in self._store.get_entities()
            if not entity.has_real_history or is_placeholder_image(entity.image)
        ]
        if not targets:
            return 0

        logger.info(f"[tracker] Backfilling {len(targets)} entities")
        updated = 0
        for index, entity in enumerate(targets):
            if await self._enrich(
                entity.id,
                with_history=not entity.has_real_history,
                with_image=is_placeholder_image(entity.image),
            ):
                updated += 1
            if index < len(targets) - 1:
                await self._sleep(BACKFILL_DELAY_SECONDS)

        self._stats["backfilled"] += updated
        logger.info(f"[tracker] Backfill complete: {updated}/{len(targets)} updated")
        return updated

    async def add_entity(self, entity: Entity) -> bool:
        """Add an entity, then load its history and portrait."""
        if not self._store.add_entity(entity):
            return False
        logger.info(f"[tracker] Added {entity.name} ({entity.id})")
        await self._enrich(entity.id, with_history=True, with_image=True)
        return True

    def remove_entity(self, entity_id: str) -> bool:
        removed = self._store.remove_entity(entity_id)
        if removed:
            logger.info(f"[tracker] Removed entity {entity_id}")
        return removed

    async def refresh_entity(self, entity_id: str) -> Optional[FeedEvent]:
        """Fetch one manual event, then reload history and portrait."""
        entity = self._store.get_entity(entity_id)
        if entity is None:
            return None

        provider = self.active_provider()
        payload = await self._news_fetcher.fetch_event(entity, provider, self._store.get_sources())
        event = None
        if payload is not None:
            event = payload.to_feed_event(
                entity.id, f"{provider.kind.value}-manual", to_iso8601(now_utc())
            )
            self._record(event)

        await self._enrich(entity_id, with_history=True, with_image=True)
        return event

    async def _enrich(self, entity_id: str, with_history: bool, with_image: bool) -> bool:
        entity = self._store.get_entity(entity_id)
        if entity is None:
            return False
        provider = self.active_provider()

        points = None
        if with_history:
            points = await provider.fetch_history(
                entity, self._store.get_config().history_window_days
            )
        image = await provider.fetch_image(entity) if with_image else None

        # Re-read: the entity may have changed or gone while we awaited
        current = self._store.get_entity(entity_id)
        if current is None:
            return False

        updated = copy.deepcopy(current)
        changed = apply_history(updated, points or [])
        if image and image != updated.image:
            updated.image = image
            changed = True
        if changed:
            self._store.upsert_entity(updated)
        return changed

    # --------------------------------------------------------
    # Sources
    # --------------------------------------------------------

    async def scan_for_sources(self, force: bool = False) -> list[Source]:
        """
        Collect new source suggestions into the potential list.

        Provider suggestions get fresh p- ids; web discoveries keep
        their auto-<domain> id. Returns the newly added suggestions.
        """
        sources = self._store.get_sources()
        potential = self._store.get_potential_sources()
        known = {source.name.strip().lower() for source in [*sources, *potential]}
        added: list[Source] = []

        provider = self.active_provider()
        suggested = await provider.fetch_suggested_sources(sources) or []
        for suggestion in suggested:
            key = suggestion.name.strip().lower()
            if key in known:
                continue
            known.add(key)
            added.append(
                Source(
                    id=f"p-{uuid.uuid4().hex[:12]}",
                    name=suggestion.name,
                    type=suggestion.type,
                    weight=suggestion.weight,
                    active=True,
                )
            )

        if self.source_discovery is not None:
            for source in await self.source_discovery.run(sources, force=force):
                key = source.name.strip().lower()
                if key in known:
                    continue
                known.add(key)
                added.append(source)

        if added:
            self._store.set_potential_sources([*potential, *added])
        logger.info(f"[tracker] Source scan added {len(added)} suggestions")
        return added

    def accept_source(self, source_id: str) -> Optional[Source]:
        """Promote a potential or discovered source to the active list."""
        potential = self._store.get_potential_sources()
        candidate = next((s for s in potential if s.id == source_id), None)
        discovered = self._discovered_for(source_id)

        if candidate is None and discovered is None:
            return None
        if candidate is None:
            candidate = Source(
                id=source_id,
                name=discovered.name,
                type=discovered.type,
                weight=discovered.weight,
            )

        accepted = dataclasses.replace(candidate, id=f"s-{uuid.uuid4().hex[:12]}", active=True)
        if not self._store.add_source(accepted):
            logger.warning(f"[tracker] Source {accepted.name} already tracked; suggestion kept")
            return None
        self._store.set_potential_sources([s for s in potential if s.id != source_id])
        if discovered is not None:
            self._store.mark_discovered_source_accepted(discovered.domain)

        logger.info(f"[tracker] Accepted source {accepted.name}")
        return accepted

    def reject_source(self, source_id: str) -> bool:
        """Drop a potential source; discovered domains are never suggested again."""
        potential = self._store.get_potential_sources()
        remaining = [s for s in potential if s.id != source_id]
        removed = len(remaining) != len(potential)
        if removed:
            self._store.set_potential_sources(remaining)

        discovered = self._discovered_for(source_id)
        if discovered is not None:
            removed = self._store.mark_discovered_source_rejected(discovered.domain) or removed

        if removed:
            logger.info(f"[tracker] Rejected source {source_id}")
        return removed

    def _discovered_for(self, source_id: str) -> Optional[DiscoveredSource]:
        domain = source_id
        if source_id.startswith(AUTO_DISCOVERED_PREFIX):
            domain = source_id[len(AUTO_DISCOVERED_PREFIX):]
        return self._store.get_discovered_source(domain)

    # --------------------------------------------------------
    # Analytics / enrichment
    # --------------------------------------------------------

    def metrics_for(self, entity_id: str) -> Optional[AdvancedMetrics]:
        entity = self._store.get_entity(entity_id)
        if entity is None:
            return None
        return calculate_all_metrics(
            entity.id,
            entity.history,
            self._store.get_feed(),
            self._store.get_sources(),
        )

    def analytics_summary(self) -> AnalyticsSummary:
        return calculate_analytics_summary(self._store.get_feed(), self._store.get_entities())

    async def context_for(self, entity_id: str, force: bool = False) -> Optional[CandidateContext]:
        entity = self._store.get_entity(entity_id)
        if entity is None:
            return None
        return await self.context_generator.generate(
            entity, self.active_provider(), self._store.get_feed(), force=force
        )

    async def update_profile(self, entity_id: Optional[str] = None, force: bool = False) -> bool:
        """Refresh one entity's profile (a random one when no id is given)."""
        if entity_id is None:
            entities = self._store.get_entities()
            if not entities:
                return False
            entity = self._rng.choice(entities)
        else:
            entity = self._store.get_entity(entity_id)
            if entity is None:
                return False

        updates = await self.profile_updater.update(entity, self.active_provider(), force=force)
        if not updates:
            return False
        self._store.update_entity(entity.id, **updates)
        self._stats["profile_updates"] += 1
        return True

    async def sync_aspirants(self) -> None:
        """Add newly announced aspirants and drop those who withdrew."""
        if self.aspirant_discovery is None:
            return
        await self.aspirant_discovery.sync(
            self._store.get_entities(), self.add_entity, self.remove_entity
        )
        await self.aspirant_discovery.check_for_withdrawals(
            self._store.get_entities(), self.remove_entity
        )

    # --------------------------------------------------------
    # Background loops
    # --------------------------------------------------------

    async def _live_loop(self) -> None:
        while self._running:
            config = self._store.get_config()
            await asyncio.sleep(config.scan_interval_seconds)
            if config.is_paused or not config.use_ai:
                continue
            await self._guarded("live step", self.step)

    async def _profile_loop(self) -> None:
        while self._running:
            await asyncio.sleep(PROFILE_UPDATE_INTERVAL_SECONDS)
            config = self._store.get_config()
            if config.is_paused or not config.use_ai:
                continue
            await self._guarded("profile update", self.update_profile)

    async def _maintenance_loop(self) -> None:
        while self._running:
            if self.source_discovery is not None and self.source_discovery.is_due():
                await self._guarded("source discovery", self.scan_for_sources)
            if self._store.get_config().auto_refresh_candidates:
                await self._guarded("aspirant sync", self.sync_aspirants)
            await asyncio.sleep(MAINTENANCE_INTERVAL_SECONDS)

    async def _guarded(self, label: str, job: Callable[[], Awaitable[Any]]) -> None:
        try:
            await job()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[tracker] {label} failed: {e}", exc_info=True)

    # --------------------------------------------------------
    # Introspection
    # --------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "running": self._running,
            "entities": len(self._store.get_entities()),
            "scheduler": self.scheduler.get_stats(),
            "store": self._store.get_stats(),
            "factory": self._factory.get_stats(),
        }
