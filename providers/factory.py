"""
Provider Factory - Cached construction of the active provider backend.

The factory:
1. Builds the backend selected by a ProviderConfig
2. Caches one instance per distinct configuration
3. Replaces (and closes) the cached instance whenever any field changes
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

from core.models import ProviderConfig, ProviderKind
from providers.backends import GeminiProvider, OllamaProvider, OpenAICompatibleProvider
from providers.base import BaseProvider


logger = logging.getLogger(__name__)


def build_provider(config: ProviderConfig, **kwargs: Any) -> BaseProvider:
    """Construct the backend for config.provider (total over ProviderKind)."""
    kind = config.provider
    if kind == ProviderKind.GEMINI:
        return GeminiProvider(config.gemini_api_key, model=config.gemini_model, **kwargs)
    if kind == ProviderKind.OLLAMA:
        return OllamaProvider(config.ollama_url, config.ollama_model, **kwargs)
    if kind == ProviderKind.HUGGINGFACE:
        return OpenAICompatibleProvider(kind, config.huggingface_api_key, **kwargs)
    if kind == ProviderKind.OPENROUTER:
        return OpenAICompatibleProvider(kind, config.openrouter_api_key, **kwargs)
    raise ValueError(f"Unsupported provider kind: {kind!r}")


class ProviderFactory:
    """
    Caching provider factory.

    Usage:
        factory = ProviderFactory()
        provider = factory.get_provider(config)
        same = factory.get_provider(config)        # identical instance
        other = factory.get_provider(changed)      # fresh instance
    """

    def __init__(
        self,
        builder: Callable[..., BaseProvider] = build_provider,
        **provider_kwargs: Any,
    ) -> None:
        self._builder = builder
        self._provider_kwargs = provider_kwargs
        self._lock = threading.Lock()
        self._cached: Optional[BaseProvider] = None
        self._cached_key: Optional[str] = None
        self._retired: list[BaseProvider] = []

        self._stats = {
            "cache_hits": 0,
            "builds": 0,
        }

    def get_provider(self, config: ProviderConfig) -> BaseProvider:
        """Return the provider for config, building a new one if it changed."""
        key = config.cache_key()
        with self._lock:
            if self._cached is not None and self._cached_key == key:
                self._stats["cache_hits"] += 1
                return self._cached

            if self._cached is not None:
                self._retire(self._cached)

            provider = self._builder(config, **self._provider_kwargs)
            self._cached = provider
            self._cached_key = key
            self._stats["builds"] += 1
            logger.info(f"[factory] Built provider {provider.name} ({config.provider.value})")
            return provider

    def _retire(self, provider: BaseProvider) -> None:
        """Schedule closing of a replaced provider on the running loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._retired.append(provider)
            return
        loop.create_task(provider.close())

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                **self._stats,
                "active": self._cached.name if self._cached else None,
            }

    async def close(self) -> None:
        """Close the cached and any retired providers."""
        with self._lock:
            providers = list(self._retired)
            if self._cached is not None:
                providers.append(self._cached)
            self._retired.clear()
            self._cached = None
            self._cached_key = None
        for provider in providers:
            await provider.close()

