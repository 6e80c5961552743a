"""
Ollama Provider - Local or network Ollama instance.

Uses /api/chat with JSON format for structured output. Works with any
pulled model (llama3, mistral, qwen2, gemma2, phi3, ...).
"""

import logging
from typing import Any, Optional

import aiohttp

from core.models import ProviderKind
from providers.base import BaseProvider, Completion
from providers import prompts
from providers.exceptions import ProviderNotConfiguredError


logger = logging.getLogger(__name__)


class OllamaProvider(BaseProvider):
    """
    Ollama backend.

    No web access: events and history come from model knowledge, so
    provenance URLs are whatever the model cites.
    """

    DEFAULT_URL = "http://localhost:11434"
    DEFAULT_MODEL = "llama3"
    TEMPERATURE = 0.3
    MAX_TOKENS = 2048

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.base_url = (base_url if base_url is not None else self.DEFAULT_URL).rstrip("/")
        self.model = model if model is not None else self.DEFAULT_MODEL

    @property
    def name(self) -> str:
        return f"Ollama ({self.model})"

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.OLLAMA

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url) and bool(self.model)

    async def _complete(
        self,
        prompt: str,
        *,
        json_mode: bool = True,
        grounded: bool = False,
    ) -> Completion:
        if not self.is_configured:
            raise ProviderNotConfiguredError("Ollama URL or model missing", provider_name=self.name)

        body: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": prompts.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "options": {
                "temperature": self.TEMPERATURE,
                "num_predict": self.MAX_TOKENS,
            },
        }
        if json_mode:
            body["format"] = "json"

        data = await self._post_json(f"{self.base_url}/api/chat", body)
        text = (data.get("message") or {}).get("content") or ""
        return Completion(text=text)

    @classmethod
    async def check_connection(
        cls,
        base_url: str,
        timeout: int = 5,
    ) -> tuple[bool, list[str]]:
        """
        Check whether an Ollama server is reachable.

        Returns:
            (reachable, available model names)
        """
        url = f"{base_url.rstrip('/')}/api/tags"
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=timeout)
            ) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        return False, []
                    data = await response.json(content_type=None)
                    if not isinstance(data, dict):
                        return True, []
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            logger.info(f"[ollama] {url} unreachable: {e}")
            return False, []

        models = [
            m.get("name") or m.get("model")
            for m in (data.get("models") or [])
            if isinstance(m, dict) and (m.get("name") or m.get("model"))
        ]
        return True, models
