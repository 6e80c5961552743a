"""
Real-Time News Fetcher - Real articles scored by the active provider.

Flow for one entity:
1. Search real news (DuckDuckGo proxy + GNews when keyed)
2. Nothing found -> let the provider find an event itself
3. Provider configured -> score the best article with the provider
4. Otherwise (or scoring failed) -> keyword heuristic on the article

The real article URL always wins over anything the model cites.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence

from core.clock import now_utc
from core.constants import DEFAULT_EVENT_IMPACT
from core.models import Entity, Sentiment, Source
from history.reconstruction import is_valid_provenance_url
from providers.base import BaseProvider
from providers.schemas import EventPayload
from providers.search import SearchClient, SearchResult


logger = logging.getLogger(__name__)


POSITIVE_WORDS = (
    "endorses", "praised", "wins", "surging", "supports", "launches",
    "successful", "popular", "leads", "alliance", "victory", "rally",
    "endorsement", "boost", "momentum",
)

NEGATIVE_WORDS = (
    "criticized", "scandal", "drops", "heckled", "defects", "allegations",
    "opposes", "falls", "controversy", "questioned", "decline", "fails",
    "loss", "protest", "rival",
)


def heuristic_sentiment(text: str) -> Sentiment:
    """Keyword vote; ties are neutral."""
    lower = text.lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in lower)
    negative = sum(1 for word in NEGATIVE_WORDS if word in lower)
    if positive > negative:
        return Sentiment.POSITIVE
    if negative > positive:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


class RealTimeNewsFetcher:
    """
    Combines web search with provider scoring.

    fetch_event() NEVER raises - returns None when nothing usable is found.
    """

    INTER_ENTITY_DELAY = 1.5

    def __init__(
        self,
        search_client: Optional[SearchClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.search_client = search_client or SearchClient()
        self._sleep = sleep
        self._stats = {
            "search_hits": 0,
            "provider_fallbacks": 0,
            "provider_scored": 0,
            "heuristic_scored": 0,
        }

    async def search(self, entity: Entity) -> list[SearchResult]:
        ddg, gnews = await asyncio.gather(
            self.search_client.search(f"{entity.name} Kenya 2027 election news"),
            self.search_client.search_gnews(f"{entity.name} Kenya"),
        )
        return [r for r in ddg + gnews if r.title and is_valid_provenance_url(r.url)]

    async def fetch_event(
        self,
        entity: Entity,
        provider: BaseProvider,
        sources: Optional[Sequence[Source]] = None,
    ) -> Optional[EventPayload]:
        """Find and score one real news item about an entity."""
        results = await self.search(entity)
        if not results:
            self._stats["provider_fallbacks"] += 1
            return await provider.fetch_event(entity, sources)

        self._stats["search_hits"] += 1
        best = results[0]
        published = best.published_at or now_utc().isoformat()

        if provider.is_configured:
            scored = await provider.score_article(entity, best.title, best.snippet)
            if scored is not None:
                self._stats["provider_scored"] += 1
                return EventPayload(
                    headline=best.title,
                    source_name=best.source,
                    sentiment=scored.sentiment,
                    impact=scored.impact,
                    published_date=published,
                    source_url=best.url,
                )
            logger.warning(f"[news_fetcher] Scoring failed for {entity.name}, using heuristic")

        self._stats["heuristic_scored"] += 1
        return EventPayload(
            headline=best.title,
            source_name=best.source,
            sentiment=heuristic_sentiment(best.text),
            impact=DEFAULT_EVENT_IMPACT,
            published_date=published,
            source_url=best.url,
        )

    async def fetch_all(
        self,
        entities: Sequence[Entity],
        provider: BaseProvider,
        sources: Optional[Sequence[Source]] = None,
    ) -> dict[str, EventPayload]:
        """Fetch one event per entity sequentially, keyed by entity id."""
        events: dict[str, EventPayload] = {}
        for index, entity in enumerate(entities):
            event = await self.fetch_event(entity, provider, sources)
            if event is not None:
                events[entity.id] = event
            if index < len(entities) - 1:
                await self._sleep(self.INTER_ENTITY_DELAY)
        return events

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)

    async def close(self) -> None:
        await self.search_client.close()
