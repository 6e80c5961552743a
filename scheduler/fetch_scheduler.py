"""
Scheduler - Periodic event fetching.

============================================================
RESPONSIBILITY
============================================================
Polls the active provider for one fresh event per entity on a
fixed interval.

- start() runs one tick immediately, then arms the timer
- stop() disarms the timer; a tick in flight finishes
- set_interval() re-arms with the new period (stop then start)
- fetch_now() runs the same tick out of band

============================================================
ONE TICK
============================================================

1. Resolve the active provider
2. For each entity, sequentially:
   - fetch one event; persist it to the feed; notify on_event
   - on failure record a FetchResult and continue
   - wait the inter-entity delay
3. Update the ScheduleState (run_count + 1, last/next run)
4. Notify on_schedule_update

Ticks are serialized by a lock; a manual fetch during a timer
tick waits for it rather than interleaving.

============================================================
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from core.clock import now_utc, to_iso8601
from core.constants import (
    DEFAULT_FETCH_INTERVAL_MINUTES,
    DEFAULT_INTER_ENTITY_DELAY_SECONDS,
    SCHEDULED_SOURCE_ID,
    SECONDS_PER_MINUTE,
)
from core.exceptions import SchedulerError
from core.models import Entity, FeedEvent, ScheduleState, Source
from database.store import PersistentStore
from providers.base import BaseProvider
from providers.schemas import EventPayload


logger = logging.getLogger(__name__)


EventFetcher = Callable[[Entity, BaseProvider, Sequence[Source]], Awaitable[Optional[EventPayload]]]
EventCallback = Callable[[FeedEvent], Any]
ScheduleCallback = Callable[[ScheduleState], Any]


class SchedulerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one entity fetch within a tick."""
    entity_id: str
    success: bool
    timestamp: str
    event: Optional[FeedEvent] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "success": self.success,
            "timestamp": self.timestamp,
            "event": self.event.to_dict() if self.event else None,
            "error": self.error,
        }


async def _provider_fetch(
    entity: Entity,
    provider: BaseProvider,
    sources: Sequence[Source],
) -> Optional[EventPayload]:
    return await provider.fetch_event(entity, sources)


class FetchScheduler:
    """
    Interval-driven event fetcher.

    Usage:
        scheduler = FetchScheduler(store, lambda: factory.get_provider(config))
        scheduler.on_event = tracker.apply_event
        await scheduler.start()
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        store: PersistentStore,
        provider_resolver: Callable[[], BaseProvider],
        fetch_event: Optional[EventFetcher] = None,
        interval_minutes: Optional[int] = None,
        inter_entity_delay: float = DEFAULT_INTER_ENTITY_DELAY_SECONDS,
        on_event: Optional[EventCallback] = None,
        on_schedule_update: Optional[ScheduleCallback] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        timer_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._provider_resolver = provider_resolver
        self._fetch_event = fetch_event or _provider_fetch
        self._interval_minutes = (
            interval_minutes
            or store.get_schedule().interval_minutes
            or DEFAULT_FETCH_INTERVAL_MINUTES
        )
        self._inter_entity_delay = inter_entity_delay
        self._sleep = sleep
        self._timer_sleep = timer_sleep

        self.on_event = on_event
        self.on_schedule_update = on_schedule_update

        self._state = SchedulerState.STOPPED
        self._tick_lock = asyncio.Lock()
        self._timer_task: Optional[asyncio.Task] = None
        self._timer_waiting = False
        self._generation = 0

        self._stats = {
            "ticks": 0,
            "events_fetched": 0,
            "failures": 0,
        }
        self._last_results: list[FetchResult] = []

    # ─────────────────────────────────────────────────────────
    # Properties
    # ─────────────────────────────────────────────────────────

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    @property
    def interval_minutes(self) -> int:
        return self._interval_minutes

    @property
    def last_results(self) -> list[FetchResult]:
        return list(self._last_results)

    # ─────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Run one tick now, then every interval. No-op when running."""
        if self.is_running:
            logger.debug("[scheduler] Already running")
            return

        self._state = SchedulerState.RUNNING
        self._generation += 1
        generation = self._generation
        logger.info(f"[scheduler] Started, interval={self._interval_minutes}m")

        await self._run_tick()

        if self.is_running and generation == self._generation:
            self._timer_task = asyncio.create_task(self._timer_loop(generation))

    def stop(self) -> None:
        """Disarm the timer. A tick already executing runs to completion."""
        if not self.is_running:
            return

        self._state = SchedulerState.STOPPED
        self._generation += 1
        if self._timer_task is not None and self._timer_waiting:
            self._timer_task.cancel()
        self._timer_task = None
        self._store.update_schedule(enabled=False)
        logger.info("[scheduler] Stopped")

    async def set_interval(self, minutes: int) -> None:
        """Change the period; re-arms immediately when running."""
        if minutes < 1:
            raise SchedulerError(
                f"Fetch interval must be at least 1 minute, got {minutes}",
                context={"interval_minutes": minutes},
            )
        self._interval_minutes = minutes
        self._store.update_schedule(interval_minutes=minutes)
        logger.info(f"[scheduler] Interval set to {minutes}m")

        if self.is_running:
            self.stop()
            await self.start()

    async def fetch_now(self) -> list[FetchResult]:
        """Out-of-band tick sharing the timer's code path."""
        return await self._run_tick()

    async def _timer_loop(self, generation: int) -> None:
        while generation == self._generation:
            self._timer_waiting = True
            try:
                await self._timer_sleep(self._interval_minutes * SECONDS_PER_MINUTE)
            finally:
                self._timer_waiting = False
            if generation != self._generation:
                break
            await self._run_tick()

    # ─────────────────────────────────────────────────────────
    # Tick
    # ─────────────────────────────────────────────────────────

    async def _run_tick(self) -> list[FetchResult]:
        async with self._tick_lock:
            entities = self._store.get_entities()
            sources = self._store.get_sources()
            provider = self._provider_resolver()
            run_number = self._store.get_schedule().run_count + 1

            logger.info(
                f"[scheduler] Running fetch cycle {run_number} "
                f"for {len(entities)} entities via {provider.name}"
            )

            results: list[FetchResult] = []
            for index, entity in enumerate(entities):
                results.append(await self._fetch_one(entity, provider, sources))
                if index < len(entities) - 1:
                    await self._sleep(self._inter_entity_delay)

            finished = now_utc()
            schedule = self._store.update_schedule(
                run_count=run_number,
                last_run=to_iso8601(finished),
                next_run=to_iso8601(finished + timedelta(minutes=self._interval_minutes)),
                interval_minutes=self._interval_minutes,
                enabled=self.is_running,
            )

            succeeded = sum(1 for r in results if r.success)
            self._stats["ticks"] += 1
            self._stats["events_fetched"] += succeeded
            self._stats["failures"] += len(results) - succeeded
            self._last_results = results

            logger.info(
                f"[scheduler] Cycle {run_number} complete: "
                f"{succeeded}/{len(results)} events"
            )
            await self._notify(self.on_schedule_update, schedule)
            return results

    async def _fetch_one(
        self,
        entity: Entity,
        provider: BaseProvider,
        sources: Sequence[Source],
    ) -> FetchResult:
        stamp = to_iso8601(now_utc())
        try:
            payload = await self._fetch_event(entity, provider, sources)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[scheduler] Fetch failed for {entity.name}: {e}", exc_info=True)
            return FetchResult(entity_id=entity.id, success=False, timestamp=stamp, error=str(e))

        if payload is None:
            logger.debug(f"[scheduler] No event found for {entity.name}")
            return FetchResult(
                entity_id=entity.id, success=False, timestamp=stamp, error="No event found"
            )

        event = payload.to_feed_event(entity.id, SCHEDULED_SOURCE_ID, stamp)
        self._store.add_feed_event(event)
        logger.info(f"[scheduler] Fetched event for {entity.name}: {event.headline}")
        await self._notify(self.on_event, event)
        return FetchResult(entity_id=entity.id, success=True, timestamp=stamp, event=event)

    async def _notify(self, callback: Optional[Callable[[Any], Any]], payload: Any) -> None:
        """Invoke a sync or async callback; its failure never aborts a tick."""
        if callback is None:
            return
        try:
            result = callback(payload)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[scheduler] Callback {callback!r} failed: {e}", exc_info=True)

    # ─────────────────────────────────────────────────────────
    # Introspection
    # ─────────────────────────────────────────────────────────

    def get_schedule(self) -> ScheduleState:
        return self._store.get_schedule()

    def get_stats(self) -> dict[str, Any]:
        schedule = self._store.get_schedule()
        return {
            **self._stats,
            "state": self._state.value,
            "interval_minutes": self._interval_minutes,
            "run_count": schedule.run_count,
            "last_run": schedule.last_run,
        }
