"""
Web Search Client - Free news search endpoints.

Sources:
- DuckDuckGo JSON proxy (no key)
- GNews free tier (100 req/day, optional API key)

Search NEVER raises to callers - failures are logged and yield [].
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

import aiohttp


logger = logging.getLogger(__name__)


KNOWN_SOURCES: dict[str, str] = {
    "nation.africa": "Daily Nation",
    "standardmedia.co.ke": "The Standard",
    "citizen.digital": "Citizen Digital",
    "the-star.co.ke": "The Star",
    "kenyans.co.ke": "Kenyans.co.ke",
    "tuko.co.ke": "Tuko News",
    "capitalfm.co.ke": "Capital FM",
    "kbc.co.ke": "KBC",
    "allafrica.com": "AllAfrica",
    "twitter.com": "X (Twitter)",
    "x.com": "X (Twitter)",
}


def extract_domain(url: str) -> str:
    """Hostname without a leading www., or '' when unparseable."""
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return hostname[4:] if hostname.startswith("www.") else hostname


def extract_source_name(url: str) -> str:
    """Human-readable outlet name for a URL."""
    domain = extract_domain(url)
    for known_domain, name in KNOWN_SOURCES.items():
        if domain == known_domain or domain.endswith("." + known_domain):
            return name
    return domain or "Web News"


@dataclass
class SearchResult:
    """One search hit."""
    title: str
    snippet: str
    url: str
    source: str
    published_at: Optional[str] = None

    @property
    def text(self) -> str:
        return f"{self.title} {self.snippet}"


class SearchClient:
    """
    Thin async client over the free search endpoints.
    """

    DDG_URL = "https://ddg-api.vercel.app/search"
    GNEWS_URL = "https://gnews.io/api/v4/search"
    DEFAULT_TIMEOUT = 8

    def __init__(
        self,
        gnews_api_key: str = "",
        timeout: Optional[int] = None,
    ) -> None:
        self.gnews_api_key = gnews_api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._session: Optional[aiohttp.ClientSession] = None
        self._stats = {
            "searches": 0,
            "failures": 0,
            "results": 0,
        }

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def _get_json(self, url: str, params: dict[str, Any]) -> Optional[dict[str, Any]]:
        self._stats["searches"] += 1
        session = await self._get_session()
        try:
            async with session.get(url, params=params) as response:
                if response.status != 200:
                    logger.warning(f"[search] {url} returned HTTP {response.status}")
                    self._stats["failures"] += 1
                    return None
                data = await response.json(content_type=None)
                if not isinstance(data, dict):
                    logger.warning(f"[search] {url} returned a non-object body")
                    self._stats["failures"] += 1
                    return None
                return data
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            logger.warning(f"[search] Request to {url} failed: {e}")
            self._stats["failures"] += 1
            return None

    async def search(self, query: str, max_results: int = 5) -> list[SearchResult]:
        """Search the DuckDuckGo proxy."""
        data = await self._get_json(self.DDG_URL, {"q": query, "max_results": max_results})
        if not data or not isinstance(data.get("results"), list):
            return []

        results: list[SearchResult] = []
        for item in data["results"]:
            if not isinstance(item, dict):
                continue
            url = item.get("url") or item.get("link") or ""
            results.append(
                SearchResult(
                    title=item.get("title") or "",
                    snippet=item.get("snippet") or item.get("body") or "",
                    url=url,
                    source=extract_source_name(url),
                    published_at=item.get("publishedDate"),
                )
            )
        self._stats["results"] += len(results)
        return results

    async def search_gnews(self, query: str, max_results: int = 5) -> list[SearchResult]:
        """Search GNews; returns [] when no API key is configured."""
        if not self.gnews_api_key:
            return []

        params = {
            "q": query,
            "lang": "en",
            "country": "ke",
            "max": max_results,
            "apikey": self.gnews_api_key,
        }
        data = await self._get_json(self.GNEWS_URL, params)
        if not data or not isinstance(data.get("articles"), list):
            return []

        results: list[SearchResult] = []
        for article in data["articles"]:
            if not isinstance(article, dict):
                continue
            url = article.get("url") or ""
            publisher = article.get("source")
            source = (
                publisher.get("name") if isinstance(publisher, dict) else None
            ) or extract_source_name(url)
            results.append(
                SearchResult(
                    title=article.get("title") or "",
                    snippet=article.get("description") or "",
                    url=url,
                    source=source,
                    published_at=article.get("publishedAt"),
                )
            )
        self._stats["results"] += len(results)
        return results

    def get_stats(self) -> dict[str, Any]:
        return dict(self._stats)

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
