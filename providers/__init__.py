"""
Provider Layer - Pluggable generative backends and web helpers.

This package provides:
- Gemini: Google Generative Language API with search grounding
- Ollama: local models via /api/chat
- HuggingFace / OpenRouter: OpenAI-compatible free tiers
- Retry wrapper, typed response schemas and a caching factory
- Web search, Wikipedia image lookup and the real-time news fetcher

Usage:
    from providers import ProviderFactory
    from core.models import ProviderConfig, ProviderKind

    factory = ProviderFactory()
    provider = factory.get_provider(
        ProviderConfig(provider=ProviderKind.OLLAMA, ollama_model="llama3")
    )

    event = await provider.fetch_event(entity)
    history = await provider.fetch_history(entity, window_days=60)

Provider methods NEVER raise - they return None on failure.
"""

from providers.backends import GeminiProvider, OllamaProvider, OpenAICompatibleProvider
from providers.base import BaseProvider, Completion
from providers.exceptions import (
    AuthenticationError,
    FetchError,
    ParseError,
    ProviderError,
    ProviderNotConfiguredError,
    QuotaExhaustedError,
    RateLimitError,
    SchemaValidationError,
    ServerOverloadError,
)
from providers.factory import ProviderFactory, build_provider
from providers.image_finder import ImageFinder, is_placeholder_image, placeholder_avatar
from providers.news_fetcher import RealTimeNewsFetcher, heuristic_sentiment
from providers.retry import RetryPolicy, with_retry
from providers.schemas import (
    ContextPayload,
    EventPayload,
    HistoryEventPayload,
    ImagePayload,
    ProfilePayload,
    SentimentScorePayload,
    SourceSuggestionPayload,
    SuggestedSource,
    parse_json,
)
from providers.search import SearchClient, SearchResult, extract_domain, extract_source_name


__all__ = [
    # Base
    "BaseProvider",
    "Completion",

    # Backends
    "GeminiProvider",
    "OllamaProvider",
    "OpenAICompatibleProvider",

    # Factory
    "ProviderFactory",
    "build_provider",

    # Retry
    "RetryPolicy",
    "with_retry",

    # Schemas
    "ContextPayload",
    "EventPayload",
    "HistoryEventPayload",
    "ImagePayload",
    "ProfilePayload",
    "SentimentScorePayload",
    "SourceSuggestionPayload",
    "SuggestedSource",
    "parse_json",

    # Web helpers
    "ImageFinder",
    "RealTimeNewsFetcher",
    "SearchClient",
    "SearchResult",
    "extract_domain",
    "extract_source_name",
    "heuristic_sentiment",
    "is_placeholder_image",
    "placeholder_avatar",

    # Exceptions
    "AuthenticationError",
    "FetchError",
    "ParseError",
    "ProviderError",
    "ProviderNotConfiguredError",
    "QuotaExhaustedError",
    "RateLimitError",
    "SchemaValidationError",
    "ServerOverloadError",
]
