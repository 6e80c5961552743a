"""
Tests for the real-time news fetcher and search helpers.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.models import Entity, Sentiment
from providers.news_fetcher import RealTimeNewsFetcher, heuristic_sentiment
from providers.schemas import EventPayload, SentimentScorePayload
from providers.search import SearchClient, SearchResult, extract_domain, extract_source_name


@pytest.fixture
def entity():
    return Entity(id="e1", name="Jane Doe")


@pytest.fixture
def article():
    return SearchResult(
        title="Jane Doe wins endorsement from governors",
        snippet="A major boost",
        url="https://www.nation.africa/kenya/news/jd",
        source="Daily Nation",
        published_at="2026-02-01T08:00:00Z",
    )


def make_search_client(results):
    client = MagicMock()
    client.search = AsyncMock(return_value=results)
    client.search_gnews = AsyncMock(return_value=[])
    client.close = AsyncMock()
    return client


def make_session(body, status=200):
    response = MagicMock(status=status)
    response.json = AsyncMock(return_value=body)
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)
    session = MagicMock(closed=False)
    session.get = MagicMock(return_value=context)
    return session


def make_client_with_body(body):
    client = SearchClient(gnews_api_key="key")
    client._session = make_session(body)
    return client


def make_provider(configured=True, score=None, event=None):
    provider = MagicMock()
    provider.is_configured = configured
    provider.score_article = AsyncMock(return_value=score)
    provider.fetch_event = AsyncMock(return_value=event)
    return provider


class TestRealTimeNewsFetcher:
    """Tests for fetch_event()."""

    @pytest.mark.asyncio
    async def test_provider_scores_real_article(self, entity, article):
        fetcher = RealTimeNewsFetcher(make_search_client([article]))
        provider = make_provider(score=SentimentScorePayload(sentiment="negative", impact=2.0))

        payload = await fetcher.fetch_event(entity, provider)

        assert payload.headline == article.title
        assert payload.source_url == article.url
        assert payload.sentiment == Sentiment.NEGATIVE
        assert payload.impact == 2.0
        assert payload.published_date == "2026-02-01T08:00:00Z"

    @pytest.mark.asyncio
    async def test_heuristic_when_unconfigured(self, entity, article):
        fetcher = RealTimeNewsFetcher(make_search_client([article]))
        provider = make_provider(configured=False)

        payload = await fetcher.fetch_event(entity, provider)

        assert payload.sentiment == Sentiment.POSITIVE
        provider.score_article.assert_not_awaited()
        assert fetcher.get_stats()["heuristic_scored"] == 1

    @pytest.mark.asyncio
    async def test_heuristic_when_scoring_fails(self, entity, article):
        fetcher = RealTimeNewsFetcher(make_search_client([article]))
        payload = await fetcher.fetch_event(entity, make_provider(score=None))
        assert payload.sentiment == Sentiment.POSITIVE

    @pytest.mark.asyncio
    async def test_falls_back_to_provider_without_results(self, entity):
        event = EventPayload(headline="From model", source_url="https://x.io/a")
        fetcher = RealTimeNewsFetcher(make_search_client([]))
        provider = make_provider(event=event)

        assert await fetcher.fetch_event(entity, provider) is event
        assert fetcher.get_stats()["provider_fallbacks"] == 1

    @pytest.mark.asyncio
    async def test_results_without_valid_url_ignored(self, entity):
        bad = SearchResult(title="t", snippet="", url="javascript:void(0)", source="?")
        fetcher = RealTimeNewsFetcher(make_search_client([bad]))
        provider = make_provider(event=None)

        assert await fetcher.fetch_event(entity, provider) is None
        provider.fetch_event.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fetch_all_sleeps_between_entities(self, article):
        delays = []

        async def sleep(delay):
            delays.append(delay)

        fetcher = RealTimeNewsFetcher(make_search_client([article]), sleep=sleep)
        entities = [Entity(id=f"e{i}", name=f"P{i}") for i in range(3)]

        events = await fetcher.fetch_all(entities, make_provider(configured=False))

        assert set(events) == {"e0", "e1", "e2"}
        assert delays == [1.5, 1.5]


class TestHelpers:
    """Tests for heuristics and URL helpers."""

    def test_heuristic_sentiment(self):
        assert heuristic_sentiment("Scandal and allegations") == Sentiment.NEGATIVE
        assert heuristic_sentiment("Wins rally") == Sentiment.POSITIVE
        assert heuristic_sentiment("Weather report") == Sentiment.NEUTRAL

    def test_extract_domain(self):
        assert extract_domain("https://www.standardmedia.co.ke/x") == "standardmedia.co.ke"
        assert extract_domain("nonsense") == ""

    def test_extract_source_name(self):
        assert extract_source_name("https://x.com/status/1") == "X (Twitter)"
        assert extract_source_name("https://unknown-blog.org/a") == "unknown-blog.org"
        assert extract_source_name("") == "Web News"


class TestSearchClient:
    """Tests for SearchClient reply handling."""

    @pytest.mark.asyncio
    async def test_parses_results(self):
        client = make_client_with_body({
            "results": [
                {"title": "Rally", "snippet": "Crowds", "url": "https://www.nation.africa/a"},
                "junk",
            ]
        })

        results = await client.search("Jane Doe")

        assert [r.title for r in results] == ["Rally"]
        assert results[0].source == "Daily Nation"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [["not", "an", "object"], "text", 42, None])
    async def test_non_object_body_yields_no_results(self, body):
        client = make_client_with_body(body)

        assert await client.search("Jane Doe") == []
        assert await client.search_gnews("Jane Doe") == []
        assert client.get_stats()["failures"] == 2

    @pytest.mark.asyncio
    async def test_gnews_source_name_not_an_object(self):
        client = make_client_with_body({
            "articles": [{"title": "T", "url": "https://www.the-star.co.ke/a", "source": "star"}]
        })

        results = await client.search_gnews("Jane Doe")

        assert results[0].source == "The Star"

    @pytest.mark.asyncio
    async def test_fetch_event_survives_non_object_body(self, entity):
        event = EventPayload(headline="From model", source_url="https://x.io/a")
        fetcher = RealTimeNewsFetcher(make_client_with_body(["not", "an", "object"]))

        assert await fetcher.fetch_event(entity, make_provider(event=event)) is event
