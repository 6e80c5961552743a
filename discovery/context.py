"""
Context Generator - Narrative briefings per entity.

Builds a CandidateContext (narrative, summary, strengths, rivals...)
from the entity's recent feed and score metrics via the provider's
chat completion. Results are cached in the store for 30 minutes.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from pydantic import ValidationError

from analytics.metrics import calculate_momentum, calculate_trend_strength
from core.clock import now_utc, parse_timestamp, to_iso8601
from core.models import CandidateContext, Entity, FeedEvent
from database.store import PersistentStore
from providers import prompts
from providers.base import BaseProvider
from providers.schemas import ContextPayload, parse_json


logger = logging.getLogger(__name__)


CONTEXT_TTL = timedelta(minutes=30)
RECENT_EVENT_LIMIT = 10

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def recent_events(feed: Sequence[FeedEvent], entity_id: str, limit: int = RECENT_EVENT_LIMIT) -> list[FeedEvent]:
    """Newest-first events about one entity."""
    own = [event for event in feed if event.entity_id == entity_id]
    own.sort(key=lambda event: parse_timestamp(event.timestamp) or _EPOCH, reverse=True)
    return own[:limit]


class ContextGenerator:
    """
    Cached narrative generation.

    Usage:
        generator = ContextGenerator(store)
        context = await generator.generate(entity, provider, store.get_feed())
    """

    def __init__(self, store: PersistentStore, ttl: timedelta = CONTEXT_TTL) -> None:
        self._store = store
        self.ttl = ttl

    def is_fresh(self, context: CandidateContext, now: Optional[datetime] = None) -> bool:
        generated = parse_timestamp(context.last_generated)
        if generated is None:
            return False
        return (now or now_utc()) - generated < self.ttl

    async def generate(
        self,
        entity: Entity,
        provider: BaseProvider,
        feed: Sequence[FeedEvent],
        force: bool = False,
    ) -> Optional[CandidateContext]:
        """Return the cached context when fresh, else generate and store a new one."""
        existing = self._store.get_candidate_context(entity.id)
        if not force and existing is not None and self.is_fresh(existing):
            return existing
        if not provider.is_configured:
            return None

        prompt = prompts.context_prompt(
            entity,
            recent_events(feed, entity.id),
            momentum=calculate_momentum(entity.history),
            trend_strength=calculate_trend_strength(entity.history),
        )
        response = await provider.chat(prompt)
        if not response:
            return None

        data = parse_json(response)
        if not isinstance(data, dict):
            logger.warning(f"[context] Unparseable context for {entity.name}")
            return None
        try:
            payload = ContextPayload.model_validate(data)
        except ValidationError as e:
            logger.warning(f"[context] Invalid context for {entity.name}: {e}")
            return None

        context = CandidateContext(
            entity_id=entity.id,
            narrative=payload.narrative or "No narrative available.",
            summary=payload.summary or "No summary available.",
            key_events=payload.key_events,
            strengths=payload.strengths,
            weaknesses=payload.weaknesses,
            controversies=payload.controversies,
            allies=payload.allies,
            rivals=payload.rivals,
            last_generated=to_iso8601(now_utc()),
        )
        self._store.set_candidate_context(context)
        logger.info(f"[context] Generated context for {entity.name}")
        return context
