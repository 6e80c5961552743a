"""
Persistent Store - In-memory mirror with write-through tiers.

============================================================
RESPONSIBILITY
============================================================
Owns every tracker collection.

- Reads are synchronous and served from the in-memory mirror
- Setters queue a durable write (fire-and-forget task)
- save() writes each collection to the primary tier independently,
  then a capped summary to the legacy tier
- load() prefers the primary tier and migrates legacy data into it

============================================================
FAILURE SEMANTICS
============================================================

Every durable-tier operation logs and swallows its own error.
The mirror stays authoritative; with no tiers at all the store
still works, just without durability.

============================================================
"""

import asyncio
import dataclasses
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional, TypeVar, Union

from core.clock import now_utc, parse_timestamp, to_iso8601
from core.constants import (
    DEFAULT_HISTORY_WINDOW_DAYS,
    EXPORT_KEY,
    LEGACY_FEED_SUMMARY_SIZE,
    MAX_FEED_EVENTS,
)
from core.exceptions import ImportDataError, LegacyTierQuotaError, StorageTierError
from core.models import (
    AspirantRecord,
    AspirantStatus,
    CandidateContext,
    DiscoveredSource,
    Entity,
    FeedEvent,
    HistoryPoint,
    ScheduleState,
    SimulationConfig,
    Source,
)
from database.tiers import FlatFileTier, SqlCollectionTier


logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================
# COLLECTION NAMES
# =============================================================

ENTITIES = "entities"
SOURCES = "sources"
POTENTIAL_SOURCES = "potential_sources"
FEED = "feed"
CONFIG = "config"
SCHEDULE = "fetch_schedule"
ASPIRANTS = "aspirant_discovery"
CANDIDATE_CONTEXTS = "candidate_contexts"
DISCOVERED_SOURCES = "discovered_sources"
META = "meta"

COLLECTIONS = (
    ENTITIES, SOURCES, POTENTIAL_SOURCES, FEED, CONFIG, SCHEDULE,
    ASPIRANTS, CANDIDATE_CONTEXTS, DISCOVERED_SOURCES, META,
)

REQUIRED_IMPORT_KEYS = (ENTITIES, SOURCES, FEED)

SINGLE_ROW_KEY = "value"
LAST_SYNC_KEY = "last_sync"


def _normalize_name(name: str) -> str:
    return " ".join(name.lower().split())


@dataclasses.dataclass(frozen=True)
class NameCollision:
    """An add_entity call refused because another id has the same name."""
    name: str
    existing_id: str
    rejected_id: str
    detected_at: str

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


class PersistentStore:
    """
    Tracker data store.

    Usage:
        store = PersistentStore(SqlCollectionTier(url), FlatFileTier(path))
        await store.load()

        store.add_entity(entity)          # synchronous, queues a write
        await store.flush()               # durability barrier
    """

    def __init__(
        self,
        primary: Optional[SqlCollectionTier] = None,
        legacy: Optional[FlatFileTier] = None,
    ) -> None:
        self.primary = primary
        self.legacy = legacy

        self._ready = asyncio.Event()
        self._save_lock = asyncio.Lock()
        self._dirty = False
        self._drain_task: Optional[asyncio.Task] = None
        self._name_collisions: list[NameCollision] = []

        self._stats = {
            "saves": 0,
            "primary_failures": 0,
            "legacy_failures": 0,
            "legacy_quota_skips": 0,
        }

        self._reset()

    def _reset(self) -> None:
        self._entities: list[Entity] = []
        self._sources: list[Source] = []
        self._potential_sources: list[Source] = []
        self._feed: list[FeedEvent] = []
        self._config = SimulationConfig()
        self._schedule = ScheduleState()
        self._aspirants: list[AspirantRecord] = []
        self._contexts: list[CandidateContext] = []
        self._discovered: list[DiscoveredSource] = []
        self._last_sync = to_iso8601(now_utc())

    # ─────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────

    async def load(self) -> bool:
        """
        Populate the mirror from durable storage.

        Returns True when data was found in either tier. Always marks
        the store ready, even when both tiers fail.
        """
        try:
            if await self._load_primary():
                return True

            document = await self._read_legacy()
            if document is None:
                logger.info("[store] No stored data found, starting with defaults")
                return False

            try:
                self._apply_document(document)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.error(f"[store] Legacy data unreadable, starting with defaults: {e}")
                return False
            logger.info(
                f"[store] Loaded legacy file: {len(self._entities)} entities, "
                f"{len(self._feed)} feed events; migrating to primary tier"
            )
            if self.primary is not None:
                await self._write_primary(self._snapshot())
            return True
        finally:
            self._ready.set()

    async def _load_primary(self) -> bool:
        if self.primary is None:
            return False
        try:
            collections = await asyncio.to_thread(self.primary.read_all)
        except StorageTierError as e:
            logger.error(f"[store] Primary tier unavailable: {e.to_log_format()}")
            return False
        if not collections:
            return False

        try:
            self._apply_collections(collections)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"[store] Primary tier data unreadable: {e}")
            self._reset()
            return False

        logger.info(
            f"[store] Loaded from primary tier: {len(self._entities)} entities, "
            f"{len(self._feed)} feed events"
        )
        return True

    async def _read_legacy(self) -> Optional[dict[str, Any]]:
        if self.legacy is None:
            return None
        try:
            return await asyncio.to_thread(self.legacy.read)
        except StorageTierError as e:
            logger.error(f"[store] Legacy tier unreadable: {e.to_log_format()}")
            return None

    async def wait_for_ready(self) -> None:
        """Resolve once load() has finished."""
        await self._ready.wait()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def close(self) -> None:
        await self.flush()
        if self.primary is not None:
            self.primary.dispose()

    # ─────────────────────────────────────────────────────────
    # Durable writes
    # ─────────────────────────────────────────────────────────

    def _schedule_save(self) -> None:
        """Mark dirty and make sure a drain task is running."""
        self._dirty = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("[store] No running loop; write deferred to next flush")
            return
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._dirty:
            self._dirty = False
            await self.save()

    async def flush(self) -> None:
        """Wait until every queued write has reached the tiers."""
        if self._drain_task is not None and not self._drain_task.done():
            await self._drain_task
        if self._dirty:
            await self._drain()

    async def save(self) -> None:
        """Write the mirror to the primary tier, then the legacy summary."""
        async with self._save_lock:
            snapshot = self._snapshot()
            legacy_document = self._legacy_summary()
            self._stats["saves"] += 1
            await self._write_primary(snapshot)
            await self._write_legacy(legacy_document)

    async def _write_primary(self, snapshot: dict[str, list[tuple[str, Any]]]) -> None:
        if self.primary is None:
            return
        for collection, items in snapshot.items():
            try:
                await asyncio.to_thread(self.primary.write_collection, collection, items)
            except StorageTierError as e:
                self._stats["primary_failures"] += 1
                logger.error(f"[store] Primary write failed: {e.to_log_format()}")

    async def _write_legacy(self, document: dict[str, Any]) -> None:
        if self.legacy is None:
            return
        try:
            await asyncio.to_thread(self.legacy.write, document)
        except LegacyTierQuotaError as e:
            self._stats["legacy_quota_skips"] += 1
            logger.warning(
                f"[store] Legacy backup skipped ({e.message}); primary tier holds the data"
            )
        except StorageTierError as e:
            self._stats["legacy_failures"] += 1
            logger.warning(f"[store] Legacy backup failed: {e.to_log_format()}")

    # ─────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────

    def _snapshot(self) -> dict[str, list[tuple[str, Any]]]:
        """Serialize every collection to ordered (key, value) rows."""
        return {
            ENTITIES: _keyed(self._entities, lambda e: e.id),
            SOURCES: _keyed(self._sources, lambda s: s.id),
            POTENTIAL_SOURCES: _keyed(self._potential_sources, lambda s: s.id),
            FEED: _keyed(self._feed, lambda f: f.id),
            CONFIG: [(SINGLE_ROW_KEY, self._config.to_dict())],
            SCHEDULE: [(SINGLE_ROW_KEY, self._schedule.to_dict())],
            ASPIRANTS: _keyed(self._aspirants, lambda a: a.name),
            CANDIDATE_CONTEXTS: _keyed(self._contexts, lambda c: c.entity_id),
            DISCOVERED_SOURCES: _keyed(self._discovered, lambda d: d.domain),
            META: [(LAST_SYNC_KEY, self._last_sync)],
        }

    def _legacy_summary(self) -> dict[str, Any]:
        """Capped document for the size-limited legacy tier."""
        return {
            ENTITIES: [e.to_dict() for e in self._entities],
            SOURCES: [s.to_dict() for s in self._sources],
            FEED: [f.to_dict() for f in self._feed[:LEGACY_FEED_SUMMARY_SIZE]],
            CONFIG: self._config.to_dict(),
            LAST_SYNC_KEY: self._last_sync,
        }

    def _full_document(self) -> dict[str, Any]:
        return {
            ENTITIES: [e.to_dict() for e in self._entities],
            SOURCES: [s.to_dict() for s in self._sources],
            POTENTIAL_SOURCES: [s.to_dict() for s in self._potential_sources],
            FEED: [f.to_dict() for f in self._feed],
            CONFIG: self._config.to_dict(),
            SCHEDULE: self._schedule.to_dict(),
            ASPIRANTS: [a.to_dict() for a in self._aspirants],
            CANDIDATE_CONTEXTS: [c.to_dict() for c in self._contexts],
            DISCOVERED_SOURCES: [d.to_dict() for d in self._discovered],
            LAST_SYNC_KEY: self._last_sync,
        }

    def _apply_collections(self, collections: dict[str, list[tuple[str, Any]]]) -> None:
        def values(name: str) -> list[Any]:
            return [value for _, value in collections.get(name, [])]

        def single(name: str, key: str = SINGLE_ROW_KEY) -> Any:
            for row_key, value in collections.get(name, []):
                if row_key == key:
                    return value
            return None

        document = {
            ENTITIES: values(ENTITIES),
            SOURCES: values(SOURCES),
            POTENTIAL_SOURCES: values(POTENTIAL_SOURCES),
            FEED: values(FEED),
            CONFIG: single(CONFIG),
            SCHEDULE: single(SCHEDULE),
            ASPIRANTS: values(ASPIRANTS),
            CANDIDATE_CONTEXTS: values(CANDIDATE_CONTEXTS),
            DISCOVERED_SOURCES: values(DISCOVERED_SOURCES),
            LAST_SYNC_KEY: single(META, LAST_SYNC_KEY),
        }
        self._apply_document(document)

    def _apply_document(self, document: dict[str, Any]) -> None:
        """
        Replace the mirror from a plain document.

        Parsing happens before any assignment, so a bad document
        raises without touching the current state.
        """
        entities = [Entity.from_dict(d) for d in document.get(ENTITIES) or []]
        sources = [Source.from_dict(d) for d in document.get(SOURCES) or []]
        potential = [Source.from_dict(d) for d in document.get(POTENTIAL_SOURCES) or []]
        feed = [FeedEvent.from_dict(d) for d in document.get(FEED) or []]
        config_data = document.get(CONFIG)
        config = SimulationConfig.from_dict(config_data) if config_data else SimulationConfig()
        schedule_data = document.get(SCHEDULE)
        schedule = ScheduleState.from_dict(schedule_data) if schedule_data else ScheduleState()
        aspirants = [AspirantRecord.from_dict(d) for d in document.get(ASPIRANTS) or []]
        contexts = [CandidateContext.from_dict(d) for d in document.get(CANDIDATE_CONTEXTS) or []]
        discovered = [DiscoveredSource.from_dict(d) for d in document.get(DISCOVERED_SOURCES) or []]
        last_sync = document.get(LAST_SYNC_KEY) or to_iso8601(now_utc())

        self._entities = entities
        self._sources = sources
        self._potential_sources = potential
        self._feed = feed[:MAX_FEED_EVENTS]
        self._config = config
        self._schedule = schedule
        self._aspirants = aspirants
        self._contexts = contexts
        self._discovered = discovered
        self._last_sync = str(last_sync)

    # ─────────────────────────────────────────────────────────
    # Export / import / clear
    # ─────────────────────────────────────────────────────────

    def export_all(self) -> str:
        """Serialize every collection under the versioned export key."""
        return json.dumps(
            {EXPORT_KEY: self._full_document(), "exported_at": to_iso8601(now_utc())},
            indent=2,
        )

    def import_all(self, blob: Union[str, bytes, dict[str, Any]]) -> bool:
        """
        Replace all state from an exported document.

        Returns False (state untouched) when the blob does not parse
        or lacks a required collection.
        """
        try:
            data = json.loads(blob) if isinstance(blob, (str, bytes)) else blob
            if not isinstance(data, dict):
                raise ImportDataError("Import document is not a JSON object")
            document = data.get(EXPORT_KEY, data)
            if not isinstance(document, dict):
                raise ImportDataError(f"{EXPORT_KEY} is not a JSON object")
            for key in REQUIRED_IMPORT_KEYS:
                if key not in document:
                    raise ImportDataError(f"Import document missing '{key}'", missing_key=key)
            self._apply_document(document)
        except json.JSONDecodeError as e:
            logger.error(f"[store] Import failed, invalid JSON: {e}")
            return False
        except ImportDataError as e:
            logger.error(f"[store] Import failed: {e.to_log_format()}")
            return False
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"[store] Import failed, malformed record: {e}")
            return False

        self._name_collisions.clear()
        logger.info(f"[store] Imported {len(self._entities)} entities, {len(self._feed)} feed events")
        self._schedule_save()
        return True

    async def clear_all(self) -> None:
        """Reset the mirror and both durable tiers to empty defaults."""
        await self.flush()
        self._reset()
        self._name_collisions.clear()

        async with self._save_lock:
            if self.primary is not None:
                try:
                    await asyncio.to_thread(self.primary.clear)
                except StorageTierError as e:
                    logger.error(f"[store] Primary clear failed: {e.to_log_format()}")
            if self.legacy is not None:
                try:
                    await asyncio.to_thread(self.legacy.clear)
                except StorageTierError as e:
                    logger.warning(f"[store] Legacy clear failed: {e.to_log_format()}")
        logger.info("[store] All data cleared")

    # ─────────────────────────────────────────────────────────
    # Entities
    # ─────────────────────────────────────────────────────────

    def get_entities(self) -> list[Entity]:
        return list(self._entities)

    def get_entity(self, entity_id: str) -> Optional[Entity]:
        return next((e for e in self._entities if e.id == entity_id), None)

    def set_entities(self, entities: Iterable[Entity]) -> None:
        self._entities = list(entities)
        self._schedule_save()

    def add_entity(self, entity: Entity) -> bool:
        """
        Add an entity unless its id or display name is already present.

        A same-name entity under a different id is refused and recorded
        in get_name_collisions() for manual review.
        """
        if self.get_entity(entity.id) is not None:
            return False

        key = _normalize_name(entity.name)
        existing = next((e for e in self._entities if _normalize_name(e.name) == key), None)
        if existing is not None:
            collision = NameCollision(
                name=entity.name,
                existing_id=existing.id,
                rejected_id=entity.id,
                detected_at=to_iso8601(now_utc()),
            )
            self._name_collisions.append(collision)
            logger.warning(
                f"[store] Name collision: '{entity.name}' ({entity.id}) "
                f"matches existing {existing.id}; not added"
            )
            return False

        self._entities.append(entity)
        self._schedule_save()
        return True

    def upsert_entity(self, entity: Entity) -> None:
        """Replace the entity with the same id, or append it."""
        for index, current in enumerate(self._entities):
            if current.id == entity.id:
                self._entities[index] = entity
                break
        else:
            self._entities.append(entity)
        self._schedule_save()

    def update_entity(self, entity_id: str, **changes: Any) -> Optional[Entity]:
        """Apply field changes to one entity; returns the updated entity."""
        for index, current in enumerate(self._entities):
            if current.id == entity_id:
                updated = dataclasses.replace(current, **changes)
                self._entities[index] = updated
                self._schedule_save()
                return updated
        return None

    def remove_entity(self, entity_id: str) -> bool:
        before = len(self._entities)
        self._entities = [e for e in self._entities if e.id != entity_id]
        if len(self._entities) == before:
            return False
        self._schedule_save()
        return True

    def get_name_collisions(self) -> list[NameCollision]:
        return list(self._name_collisions)

    # ─────────────────────────────────────────────────────────
    # Sources
    # ─────────────────────────────────────────────────────────

    def get_sources(self) -> list[Source]:
        return list(self._sources)

    def set_sources(self, sources: Iterable[Source]) -> None:
        self._sources = list(sources)
        self._schedule_save()

    def add_source(self, source: Source) -> bool:
        key = _normalize_name(source.name)
        if any(s.id == source.id or _normalize_name(s.name) == key for s in self._sources):
            return False
        self._sources.append(source)
        self._schedule_save()
        return True

    def update_source(self, source_id: str, **changes: Any) -> Optional[Source]:
        for index, current in enumerate(self._sources):
            if current.id == source_id:
                updated = dataclasses.replace(current, **changes)
                self._sources[index] = updated
                self._schedule_save()
                return updated
        return None

    def remove_source(self, source_id: str) -> bool:
        before = len(self._sources)
        self._sources = [s for s in self._sources if s.id != source_id]
        if len(self._sources) == before:
            return False
        self._schedule_save()
        return True

    def get_potential_sources(self) -> list[Source]:
        return list(self._potential_sources)

    def set_potential_sources(self, sources: Iterable[Source]) -> None:
        self._potential_sources = list(sources)
        self._schedule_save()

    # ─────────────────────────────────────────────────────────
    # Feed
    # ─────────────────────────────────────────────────────────

    def get_feed(self) -> list[FeedEvent]:
        return list(self._feed)

    def set_feed(self, feed: Iterable[FeedEvent]) -> None:
        self._feed = list(feed)[:MAX_FEED_EVENTS]
        self._schedule_save()

    def add_feed_event(self, event: FeedEvent) -> None:
        """Prepend an event; the feed keeps the newest MAX_FEED_EVENTS."""
        self._feed = [event, *self._feed][:MAX_FEED_EVENTS]
        self._schedule_save()

    # ─────────────────────────────────────────────────────────
    # Config / schedule / sync marker
    # ─────────────────────────────────────────────────────────

    def get_config(self) -> SimulationConfig:
        return self._config

    def set_config(self, config: SimulationConfig) -> None:
        self._config = config
        self._schedule_save()

    def get_schedule(self) -> ScheduleState:
        return self._schedule

    def update_schedule(self, **changes: Any) -> ScheduleState:
        self._schedule = dataclasses.replace(self._schedule, **changes)
        self._schedule_save()
        return self._schedule

    def get_last_sync(self) -> str:
        return self._last_sync

    def set_last_sync(self, stamp: str) -> None:
        self._last_sync = stamp
        self._schedule_save()

    # ─────────────────────────────────────────────────────────
    # Aspirants
    # ─────────────────────────────────────────────────────────

    def get_aspirants(self) -> list[AspirantRecord]:
        return list(self._aspirants)

    def get_aspirant(self, name: str) -> Optional[AspirantRecord]:
        return next((a for a in self._aspirants if a.name == name), None)

    def add_aspirant(self, aspirant: AspirantRecord) -> None:
        """Record a discovery; a known name only refreshes last_seen and status."""
        existing = self.get_aspirant(aspirant.name)
        if existing is not None:
            existing.last_seen = aspirant.last_seen
            existing.status = aspirant.status
        else:
            self._aspirants.append(aspirant)
        self._schedule_save()

    def update_aspirant_status(self, name: str, status: AspirantStatus) -> bool:
        aspirant = self.get_aspirant(name)
        if aspirant is None:
            return False
        aspirant.status = status
        aspirant.last_seen = to_iso8601(now_utc())
        self._schedule_save()
        return True

    def remove_aspirant(self, name: str) -> bool:
        before = len(self._aspirants)
        self._aspirants = [a for a in self._aspirants if a.name != name]
        if len(self._aspirants) == before:
            return False
        self._schedule_save()
        return True

    # ─────────────────────────────────────────────────────────
    # Candidate contexts
    # ─────────────────────────────────────────────────────────

    def get_candidate_contexts(self) -> list[CandidateContext]:
        return list(self._contexts)

    def get_candidate_context(self, entity_id: str) -> Optional[CandidateContext]:
        return next((c for c in self._contexts if c.entity_id == entity_id), None)

    def set_candidate_context(self, context: CandidateContext) -> None:
        for index, current in enumerate(self._contexts):
            if current.entity_id == context.entity_id:
                self._contexts[index] = context
                break
        else:
            self._contexts.append(context)
        self._schedule_save()

    # ─────────────────────────────────────────────────────────
    # Discovered sources
    # ─────────────────────────────────────────────────────────

    def get_discovered_sources(self) -> list[DiscoveredSource]:
        return list(self._discovered)

    def get_discovered_source(self, domain: str) -> Optional[DiscoveredSource]:
        return next((d for d in self._discovered if d.domain == domain), None)

    def add_discovered_source(self, source: DiscoveredSource) -> DiscoveredSource:
        """Insert a new domain, or bump seen_count/last_seen of a known one."""
        existing = self.get_discovered_source(source.domain)
        if existing is not None:
            existing.last_seen = source.last_seen
            existing.seen_count += 1
            self._schedule_save()
            return existing
        self._discovered.append(source)
        self._schedule_save()
        return source

    def mark_discovered_source_accepted(self, domain: str) -> bool:
        return self._mark_discovered(domain, accepted=True)

    def mark_discovered_source_rejected(self, domain: str) -> bool:
        return self._mark_discovered(domain, accepted=False)

    def _mark_discovered(self, domain: str, accepted: bool) -> bool:
        """Accepted and rejected are exclusive; a terminal record is left alone."""
        source = self.get_discovered_source(domain)
        if source is None or source.is_terminal:
            return False
        if accepted:
            source.accepted = True
        else:
            source.rejected = True
        self._schedule_save()
        return True

    # ─────────────────────────────────────────────────────────
    # Query helpers
    # ─────────────────────────────────────────────────────────

    @staticmethod
    def filter_by_days(
        items: Iterable[T],
        days: int,
        now: Optional[datetime] = None,
    ) -> list[T]:
        """Keep items whose time/timestamp lies within the last `days` days."""
        cutoff = (now or now_utc()) - timedelta(days=days)
        kept = []
        for item in items:
            raw = getattr(item, "time", None) or getattr(item, "timestamp", None)
            stamp = parse_timestamp(raw)
            if stamp is not None and stamp >= cutoff:
                kept.append(item)
        return kept

    def get_entity_history(
        self,
        entity_id: str,
        days: int = DEFAULT_HISTORY_WINDOW_DAYS,
    ) -> list[HistoryPoint]:
        entity = self.get_entity(entity_id)
        if entity is None:
            return []
        return self.filter_by_days(entity.history, days)

    def get_feed_last_24_hours(self) -> list[FeedEvent]:
        cutoff = now_utc() - timedelta(hours=24)
        recent = []
        for event in self._feed:
            stamp = parse_timestamp(event.timestamp)
            if stamp is not None and stamp >= cutoff:
                recent.append(event)
        return recent

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "entities": len(self._entities),
            "feed_events": len(self._feed),
            "pending_write": self._dirty,
            "ready": self.is_ready,
        }


def _keyed(items: Iterable[T], key: Callable[[T], str]) -> list[tuple[str, Any]]:
    """Serialize items to (key, dict) rows, keeping the first of any duplicate key."""
    rows: list[tuple[str, Any]] = []
    seen: set[str] = set()
    for item in items:
        item_key = key(item)
        if item_key in seen:
            continue
        seen.add(item_key)
        rows.append((item_key, item.to_dict()))
    return rows
