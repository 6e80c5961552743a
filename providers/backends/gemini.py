"""
Gemini Provider - Google Generative Language REST API.

Uses generateContent with the Google Search tool for grounded calls.
Grounded responses are free text (the search tool cannot be combined
with a JSON response mime type), so the prompt names the JSON shape and
fences are stripped on decode. Grounding chunk URLs back-fill missing
event provenance.
"""

import logging
from typing import Any, Optional

from core.models import Entity, ProviderKind
from history.reconstruction import is_valid_provenance_url
from providers.base import BaseProvider, Completion
from providers import prompts
from providers.exceptions import ProviderNotConfiguredError, SchemaValidationError
from providers.schemas import ImagePayload


logger = logging.getLogger(__name__)


class GeminiProvider(BaseProvider):
    """
    Gemini backend.

    Features:
    - Google Search grounding for live events and history
    - Model-driven image lookup, falling back to Wikipedia
    """

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
    DEFAULT_MODEL = "gemini-2.5-flash"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key or ""
        self.model = model or self.DEFAULT_MODEL

    @property
    def name(self) -> str:
        return "Gemini"

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.GEMINI

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.strip())

    @property
    def supports_grounding(self) -> bool:
        return True

    async def _complete(
        self,
        prompt: str,
        *,
        json_mode: bool = True,
        grounded: bool = False,
    ) -> Completion:
        if not self.is_configured:
            raise ProviderNotConfiguredError("Gemini API key missing", provider_name=self.name)

        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "systemInstruction": {"parts": [{"text": prompts.SYSTEM_PROMPT}]},
        }
        if grounded:
            body["tools"] = [{"google_search": {}}]
        elif json_mode:
            body["generationConfig"] = {"responseMimeType": "application/json"}

        data = await self._post_json(
            f"{self.BASE_URL}/{self.model}:generateContent",
            body,
            headers={"x-goog-api-key": self.api_key},
        )
        return Completion(
            text=self._extract_text(data),
            grounding_urls=self._extract_grounding_urls(data),
        )

    @staticmethod
    def _extract_text(data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict))

    @staticmethod
    def _extract_grounding_urls(data: dict[str, Any]) -> list[str]:
        candidates = data.get("candidates") or []
        if not candidates:
            return []
        chunks = (candidates[0].get("groundingMetadata") or {}).get("groundingChunks") or []
        urls = []
        for chunk in chunks:
            uri = (chunk.get("web") or {}).get("uri") if isinstance(chunk, dict) else None
            if uri:
                urls.append(uri)
        return urls

    async def fetch_image(self, entity: Entity) -> Optional[str]:
        """Ask the model for a portrait first, then fall back to Wikipedia/placeholder."""
        if self.is_configured:
            async def operation() -> Optional[str]:
                completion = await self._complete(prompts.image_prompt(entity), grounded=True)
                payload = self._validate(ImagePayload, self._decode(completion))
                if not is_valid_provenance_url(payload.image_url):
                    raise SchemaValidationError("No usable image URL", provider_name=self.name)
                return payload.image_url

            found = await self._run(operation, f"{self.name}:fetch_image:{entity.name}")
            if found:
                return found

        return await super().fetch_image(entity)
