"""
Source Discovery - Finds new outlets covering the election.

============================================================
RESPONSIBILITY
============================================================
Scans web search results for domains that are not yet tracked.

- Runs at most once per DISCOVERY_INTERVAL
- Skips tracked, ignored and terminal (accepted/rejected) domains
- Counts sightings per domain in the discovered_sources collection
- Suggests a Source once a domain was seen MIN_SEEN_COUNT times

============================================================
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Sequence

from core.clock import now_utc, to_iso8601
from core.models import DiscoveredSource, Source, SourceType
from database.store import PersistentStore
from providers.search import SearchClient, SearchResult, extract_domain


logger = logging.getLogger(__name__)


DISCOVERY_INTERVAL = timedelta(hours=6)
MIN_SEEN_COUNT = 3
QUERY_DELAY_SECONDS = 1.0
RESULTS_PER_QUERY = 10

DISCOVERY_QUERIES = (
    "Kenya 2027 election news",
    "Kenya politics blog 2027",
    "latest kenya political news sites",
    "kenya election analysis blogs",
    "kenya political pundits sub-stack",
)

IGNORED_DOMAINS = (
    "nation.africa",
    "standardmedia.co.ke",
    "the-star.co.ke",
    "citizen.digital",
    "kenyans.co.ke",
    "tuko.co.ke",
    "kbc.co.ke",
    "capitalfm.co.ke",
    "twitter.com",
    "x.com",
    "facebook.com",
    "instagram.com",
    "youtube.com",
    "linkedin.com",
    "tiktok.com",
    "reddit.com",
    "wikipedia.org",
    "google.com",
    "yahoo.com",
    "bing.com",
)


def is_ignored_domain(domain: str) -> bool:
    return any(domain == ignored or domain.endswith("." + ignored) for ignored in IGNORED_DOMAINS)


def is_tracked_domain(domain: str, sources: Sequence[Source]) -> bool:
    """True when a current source id or name already refers to the domain."""
    for source in sources:
        if domain in source.id.lower() or domain in source.name.lower():
            return True
    return False


class SourceDiscovery:
    """
    Rate-limited discovery of new outlets.

    Usage:
        discovery = SourceDiscovery(store, search_client)
        suggestions = await discovery.run(store.get_sources())
    """

    def __init__(
        self,
        store: PersistentStore,
        search_client: SearchClient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._search = search_client
        self._sleep = sleep
        self._last_run: Optional[datetime] = None

    @property
    def last_run(self) -> Optional[datetime]:
        return self._last_run

    def is_due(self, now: Optional[datetime] = None) -> bool:
        if self._last_run is None:
            return True
        return (now or now_utc()) - self._last_run >= DISCOVERY_INTERVAL

    async def run(self, current_sources: Sequence[Source], force: bool = False) -> list[Source]:
        """
        Scan for new domains and return the ones worth suggesting.

        Returns [] when the previous scan is less than 6 hours old.
        """
        now = now_utc()
        if not force and not self.is_due(now):
            logger.debug("[source_discovery] Skipped, last scan is recent")
            return []
        self._last_run = now

        logger.info("[source_discovery] Starting source discovery scan")
        candidates = await self._collect_candidates(current_sources)

        await self._store.wait_for_ready()
        stamp = to_iso8601(now_utc())
        suggestions: list[Source] = []

        for domain, sample in candidates.items():
            entry = self._store.get_discovered_source(domain)
            if entry is not None and entry.is_terminal:
                continue

            if entry is None:
                source_type = SourceType.NEWS if "news" in sample.title.lower() else SourceType.BLOG
                entry = self._store.add_discovered_source(
                    DiscoveredSource(
                        domain=domain,
                        name=domain,
                        type=source_type,
                        weight=1.0,
                        first_seen=stamp,
                        last_seen=stamp,
                        seen_count=1,
                    )
                )
            else:
                entry = self._store.add_discovered_source(
                    DiscoveredSource(domain=domain, name=entry.name, last_seen=stamp)
                )

            if entry.seen_count >= MIN_SEEN_COUNT:
                suggestions.append(
                    Source(
                        id=f"auto-{domain}",
                        name=entry.name,
                        type=entry.type,
                        weight=entry.weight,
                        active=True,
                    )
                )

        logger.info(
            f"[source_discovery] Scan complete: {len(candidates)} candidates, "
            f"{len(suggestions)} suggestions"
        )
        return suggestions

    async def _collect_candidates(self, current_sources: Sequence[Source]) -> dict[str, SearchResult]:
        """One sample result per untracked, non-ignored domain."""
        candidates: dict[str, SearchResult] = {}
        for index, query in enumerate(DISCOVERY_QUERIES):
            for result in await self._search.search(query, max_results=RESULTS_PER_QUERY):
                domain = extract_domain(result.url)
                if not domain:
                    continue
                if is_tracked_domain(domain, current_sources) or is_ignored_domain(domain):
                    continue
                candidates[domain] = result
            if index < len(DISCOVERY_QUERIES) - 1:
                await self._sleep(QUERY_DELAY_SECONDS)
        return candidates
