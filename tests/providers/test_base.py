"""
Tests for the provider contract (BaseProvider public API).
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from core.models import Entity, ProviderKind, Sentiment, Source
from providers.base import BaseProvider, Completion
from providers.exceptions import AuthenticationError, RateLimitError
from providers.retry import RetryPolicy


NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


class ScriptedProvider(BaseProvider):
    """Backend whose raw replies (or errors) are scripted in order."""

    def __init__(self, replies, configured=True, grounded=False, **kwargs):
        async def no_sleep(delay):
            return None

        kwargs.setdefault("retry_policy", RetryPolicy(max_attempts=3, base_delay=0.0))
        super().__init__(sleep=no_sleep, **kwargs)
        self.replies = list(replies)
        self.configured = configured
        self.grounded = grounded
        self.prompts = []

    @property
    def name(self):
        return "Scripted"

    @property
    def kind(self):
        return ProviderKind.OLLAMA

    @property
    def is_configured(self):
        return self.configured

    @property
    def supports_grounding(self):
        return self.grounded

    async def _complete(self, prompt, *, json_mode=True, grounded=False):
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def completion(data, urls=None):
    text = data if isinstance(data, str) else json.dumps(data)
    return Completion(text=text, grounding_urls=urls or [])


@pytest.fixture
def entity():
    return Entity(id="e1", name="Jane Doe", role="Governor", party="UDA")


class TestFetchEvent:
    """Tests for fetch_event()."""

    @pytest.mark.asyncio
    async def test_valid_event(self, entity):
        provider = ScriptedProvider([completion({
            "headline": "Jane Doe opens hospital",
            "sourceName": "Daily Nation",
            "sentiment": "positive",
            "impact": 1.2,
            "url": "https://nation.africa/story",
        })])

        payload = await provider.fetch_event(entity, [Source(id="s", name="Daily Nation")])

        assert payload.headline == "Jane Doe opens hospital"
        assert payload.sentiment == Sentiment.POSITIVE
        assert payload.source_url == "https://nation.africa/story"

    @pytest.mark.asyncio
    async def test_grounding_url_fills_missing_provenance(self, entity):
        provider = ScriptedProvider(
            [completion({"headline": "h"}, urls=["not-a-url", "https://the-star.co.ke/a"])],
            grounded=True,
        )
        payload = await provider.fetch_event(entity)
        assert payload.source_url == "https://the-star.co.ke/a"

    @pytest.mark.asyncio
    async def test_event_without_provenance_discarded(self, entity):
        provider = ScriptedProvider([completion({"headline": "h", "url": "ftp://x"})])
        assert await provider.fetch_event(entity) is None
        assert provider.get_stats()["failed_calls"] == 1

    @pytest.mark.asyncio
    async def test_unconfigured_makes_no_call(self, entity):
        provider = ScriptedProvider([], configured=False)
        assert await provider.fetch_event(entity) is None
        assert provider.prompts == []

    @pytest.mark.asyncio
    async def test_rate_limit_retried_then_succeeds(self, entity):
        provider = ScriptedProvider([
            RateLimitError("429"),
            completion({"headline": "h", "url": "https://x.co.ke/a"}),
        ])
        payload = await provider.fetch_event(entity)
        assert payload is not None
        assert len(provider.prompts) == 2

    @pytest.mark.asyncio
    async def test_terminal_error_returns_none(self, entity):
        provider = ScriptedProvider([AuthenticationError("401"), completion({})])
        assert await provider.fetch_event(entity) is None
        assert len(provider.prompts) == 1

    @pytest.mark.asyncio
    async def test_garbage_reply_returns_none(self, entity):
        provider = ScriptedProvider([completion("I cannot help with that")])
        assert await provider.fetch_event(entity) is None


class TestFetchHistory:
    """Tests for fetch_history()."""

    @pytest.mark.asyncio
    async def test_reconstructs_series(self, entity):
        provider = ScriptedProvider([completion({"history": [
            {"date": "2026-02-10", "headline": "b", "impact": -1, "url": "https://x.io/b"},
            {"date": "2026-02-01", "headline": "a", "impact": 2, "url": "https://x.io/a"},
            {"date": "2025-06-01", "headline": "old", "impact": 4, "url": "https://x.io/c"},
            {"date": "2026-02-12", "headline": "no url", "impact": 4},
        ]})])

        points = await provider.fetch_history(entity, 60, now=NOW)

        assert [p.time for p in points] == ["2026-02-01", "2026-02-10"]
        assert [p.score for p in points] == [102.0, 101.0]

    @pytest.mark.asyncio
    async def test_bare_list_accepted(self, entity):
        provider = ScriptedProvider([completion([
            {"date": "2026-02-01", "impact": 1, "url": "https://x.io/a"},
        ])])
        points = await provider.fetch_history(entity, 60, now=NOW)
        assert len(points) == 1

    @pytest.mark.asyncio
    async def test_missing_list_returns_none(self, entity):
        provider = ScriptedProvider([completion({"events": "none"})])
        assert await provider.fetch_history(entity, 60, now=NOW) is None


class TestOtherOperations:
    """Tests for sources, chat and image lookup."""

    @pytest.mark.asyncio
    async def test_suggested_sources_skip_known_names(self):
        provider = ScriptedProvider([completion({"sources": [
            {"name": "daily nation", "type": "news", "weight": 2},
            {"name": "KBC", "type": "tv", "weight": 2},
        ]})])

        suggestions = await provider.fetch_suggested_sources([Source(id="s", name="Daily Nation")])

        assert [s.name for s in suggestions] == ["KBC"]

    @pytest.mark.asyncio
    async def test_chat_returns_raw_text(self):
        provider = ScriptedProvider([completion("plain words")])
        assert await provider.chat("hello") == "plain words"

    @pytest.mark.asyncio
    async def test_fetch_image_falls_back_to_placeholder(self, entity):
        provider = ScriptedProvider([], configured=False)
        provider.image_finder.find = AsyncMock(return_value=None)

        image = await provider.fetch_image(entity)

        assert "ui-avatars.com" in image
        assert "Jane%20Doe" in image

    @pytest.mark.asyncio
    async def test_fetch_image_prefers_wikipedia(self, entity):
        provider = ScriptedProvider([])
        provider.image_finder.find = AsyncMock(return_value="https://upload.wikimedia.org/jd.jpg")
        assert await provider.fetch_image(entity) == "https://upload.wikimedia.org/jd.jpg"
