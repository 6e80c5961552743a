"""
Base Provider - Abstract interface for all generative backends.

All providers must follow the non-raising, retry-wrapped, schema-validated
pattern: public methods return None (or fall back) on failure and never
propagate errors to callers.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Sequence

import aiohttp
from pydantic import BaseModel, ValidationError

from core.clock import now_utc
from core.models import Entity, HistoryPoint, ProviderKind, Source
from history.reconstruction import is_valid_provenance_url, reconstruct_history
from providers import prompts
from providers.exceptions import (
    FetchError,
    ParseError,
    SchemaValidationError,
    error_for_status,
)
from providers.image_finder import ImageFinder, placeholder_avatar
from providers.retry import DEFAULT_RETRY_POLICY, RetryPolicy, with_retry
from providers.schemas import (
    EventPayload,
    HistoryEventPayload,
    SentimentScorePayload,
    SourceSuggestionPayload,
    SuggestedSource,
    parse_json,
)


logger = logging.getLogger(__name__)


@dataclass
class Completion:
    """Raw text returned by a backend plus any grounding URLs it cited."""
    text: str
    grounding_urls: list[str] = field(default_factory=list)


class BaseProvider(ABC):
    """
    Abstract base class for provider backends.

    DESIGN PRINCIPLES:
    1. NEVER raise - log and return None
    2. RETRY only rate-limit / overload failures, with backoff
    3. VALIDATE every response against a typed schema
    4. PROVENANCE - live events without a valid URL are discarded

    Subclasses implement:
    - name / kind / is_configured
    - _complete() - one raw model call, raising ProviderError subclasses
    """

    DEFAULT_TIMEOUT = 60

    def __init__(
        self,
        timeout: Optional[int] = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        image_finder: Optional[ImageFinder] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.retry_policy = retry_policy
        self.image_finder = image_finder or ImageFinder()
        self._sleep = sleep
        self._session: Optional[aiohttp.ClientSession] = None

        self._stats = {
            "total_calls": 0,
            "successful_calls": 0,
            "failed_calls": 0,
            "schema_rejections": 0,
        }

    # ─────────────────────────────────────────────────────────────
    # Backend contract
    # ─────────────────────────────────────────────────────────────

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name."""
        pass

    @property
    @abstractmethod
    def kind(self) -> ProviderKind:
        pass

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials/endpoint are present. Never performs I/O."""
        pass

    @property
    def supports_grounding(self) -> bool:
        """Whether the backend can search the live web while answering."""
        return False

    @abstractmethod
    async def _complete(
        self,
        prompt: str,
        *,
        json_mode: bool = True,
        grounded: bool = False,
    ) -> Completion:
        """
        Perform one raw model call.

        Must raise ProviderError subclasses on failure so that the retry
        wrapper can classify them.
        """
        pass

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    async def fetch_event(
        self,
        entity: Entity,
        sources: Optional[Sequence[Source]] = None,
    ) -> Optional[EventPayload]:
        """
        Fetch the latest news event about an entity.

        Returns None when unconfigured, on failure, or when no valid
        provenance URL can be established.
        """
        if not self.is_configured:
            return None

        async def operation() -> Optional[EventPayload]:
            completion = await self._complete(
                prompts.event_prompt(entity, self.supports_grounding),
                grounded=self.supports_grounding,
            )
            payload = self._validate(EventPayload, self._decode(completion))

            url = payload.source_url
            if not is_valid_provenance_url(url):
                url = next(
                    (u for u in completion.grounding_urls if is_valid_provenance_url(u)),
                    None,
                )
            if url is None:
                raise SchemaValidationError(
                    "Event has no valid provenance URL",
                    provider_name=self.name,
                )
            return payload.model_copy(update={"source_url": url})

        return await self._run(operation, f"{self.name}:fetch_event:{entity.name}")

    async def fetch_history(
        self,
        entity: Entity,
        window_days: int,
        now: Optional[datetime] = None,
    ) -> Optional[list[HistoryPoint]]:
        """
        Fetch dated events and reconstruct a cumulative score series.

        Returns None on failure; [] when the response had no usable events.
        """
        if not self.is_configured:
            return None
        now = now or now_utc()

        async def operation() -> list[HistoryPoint]:
            completion = await self._complete(
                prompts.history_prompt(entity, window_days, now),
                grounded=self.supports_grounding,
            )
            data = self._decode(completion)
            raw_events = data.get("history") if isinstance(data, dict) else data
            if not isinstance(raw_events, list):
                raise SchemaValidationError(
                    "History response has no event list",
                    provider_name=self.name,
                )

            events: list[HistoryEventPayload] = []
            for raw in raw_events:
                try:
                    events.append(HistoryEventPayload.model_validate(raw))
                except ValidationError:
                    self._stats["schema_rejections"] += 1
            return reconstruct_history(events, window_days, now=now)

        return await self._run(operation, f"{self.name}:fetch_history:{entity.name}")

    async def fetch_image(self, entity: Entity) -> Optional[str]:
        """
        Find a portrait URL.

        Falls back from Wikipedia to a generated placeholder avatar.
        """
        found = await self.image_finder.find(entity.name)
        return found or placeholder_avatar(entity.name)

    async def fetch_suggested_sources(
        self,
        existing: Sequence[Source],
    ) -> Optional[list[SuggestedSource]]:
        """Ask for new outlets not already tracked (case-insensitive by name)."""
        if not self.is_configured:
            return None

        existing_names = [source.name for source in existing]
        known = {name.strip().lower() for name in existing_names}

        async def operation() -> list[SuggestedSource]:
            completion = await self._complete(prompts.suggested_sources_prompt(existing_names))
            data = self._decode(completion)
            if isinstance(data, list):
                data = {"sources": data}
            payload = self._validate(SourceSuggestionPayload, data)
            return [s for s in payload.sources if s.name.strip().lower() not in known]

        return await self._run(operation, f"{self.name}:fetch_suggested_sources")

    async def score_article(
        self,
        entity: Entity,
        headline: str,
        snippet: str = "",
    ) -> Optional[SentimentScorePayload]:
        """Score the sentiment effect of an article found elsewhere."""
        if not self.is_configured:
            return None

        async def operation() -> SentimentScorePayload:
            completion = await self._complete(
                prompts.score_article_prompt(entity, headline, snippet)
            )
            return self._validate(SentimentScorePayload, self._decode(completion))

        return await self._run(operation, f"{self.name}:score_article:{entity.name}")

    async def chat(self, prompt: str) -> Optional[str]:
        """Free-form completion; returns the raw text or None."""
        if not self.is_configured:
            return None

        async def operation() -> Optional[str]:
            completion = await self._complete(prompt, json_mode=False)
            return completion.text or None

        return await self._run(operation, f"{self.name}:chat")

    def get_stats(self) -> dict[str, Any]:
        """Get provider statistics."""
        return {
            **self._stats,
            "provider": self.name,
            "kind": self.kind.value,
            "configured": self.is_configured,
        }

    async def close(self) -> None:
        """Close the aiohttp session and helpers."""
        if self._session and not self._session.closed:
            await self._session.close()
        await self.image_finder.close()

    # ─────────────────────────────────────────────────────────────
    # Internal methods
    # ─────────────────────────────────────────────────────────────

    async def _run(self, operation: Callable[[], Awaitable[Any]], label: str) -> Any:
        self._stats["total_calls"] += 1
        result = await with_retry(operation, self.retry_policy, label, self._sleep)
        if result is None:
            self._stats["failed_calls"] += 1
        else:
            self._stats["successful_calls"] += 1
        return result

    def _decode(self, completion: Completion) -> Any:
        data = parse_json(completion.text)
        if data is None:
            raise ParseError(
                "Response is not valid JSON",
                provider_name=self.name,
                raw_data=completion.text,
            )
        return data

    def _validate(self, schema: type[BaseModel], data: Any) -> Any:
        try:
            return schema.model_validate(data)
        except ValidationError as e:
            self._stats["schema_rejections"] += 1
            raise SchemaValidationError(
                f"Response does not match {schema.__name__}",
                provider_name=self.name,
                details={"errors": e.errors(include_url=False)[:5]},
            )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """POST JSON and decode the JSON reply, mapping HTTP failures."""
        session = await self._get_session()
        try:
            async with session.post(url, json=payload, headers=headers, params=params) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise error_for_status(response.status, body, self.name, url=url)
                try:
                    return await response.json(content_type=None)
                except ValueError:
                    text = await response.text()
                    raise ParseError(
                        "Backend returned a non-JSON body",
                        provider_name=self.name,
                        raw_data=text,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"Network error: {e}", provider_name=self.name, url=url)

    async def _get_json(self, url: str) -> dict[str, Any]:
        session = await self._get_session()
        try:
            async with session.get(url) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise error_for_status(response.status, body, self.name, url=url)
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"Network error: {e}", provider_name=self.name, url=url)
