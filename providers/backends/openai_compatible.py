"""
OpenAI-Compatible Provider - HuggingFace Inference and OpenRouter free tier.

Both speak the chat-completions format. OpenRouter additionally
supports JSON response mode and wants attribution headers.
"""

import logging
from dataclasses import dataclass
from typing import Any

from core.models import ProviderKind
from providers.base import BaseProvider, Completion
from providers import prompts
from providers.exceptions import ProviderNotConfiguredError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Endpoint:
    url: str
    model: str
    label: str


ENDPOINTS: dict[ProviderKind, Endpoint] = {
    ProviderKind.HUGGINGFACE: Endpoint(
        url=(
            "https://api-inference.huggingface.co/models/"
            "mistralai/Mistral-7B-Instruct-v0.3/v1/chat/completions"
        ),
        model="mistralai/Mistral-7B-Instruct-v0.3",
        label="HuggingFace (Mistral 7B)",
    ),
    ProviderKind.OPENROUTER: Endpoint(
        url="https://openrouter.ai/api/v1/chat/completions",
        model="meta-llama/llama-3-8b-instruct:free",
        label="OpenRouter (Llama 3 8B)",
    ),
}


class OpenAICompatibleProvider(BaseProvider):
    """
    Chat-completions backend for the hosted free tiers.
    """

    TEMPERATURE = 0.3
    MAX_TOKENS = 2048
    REFERER = "https://polimetric.app"
    TITLE = "PoliMetric Kenya 2027"

    def __init__(
        self,
        backend: ProviderKind,
        api_key: str,
        **kwargs: Any,
    ) -> None:
        if backend not in ENDPOINTS:
            raise ValueError(f"{backend.value} is not an OpenAI-compatible backend")
        super().__init__(**kwargs)
        self.backend = backend
        self.api_key = api_key or ""
        self.endpoint = ENDPOINTS[backend]

    @property
    def name(self) -> str:
        return self.endpoint.label

    @property
    def kind(self) -> ProviderKind:
        return self.backend

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.strip())

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        if self.backend == ProviderKind.OPENROUTER:
            headers["HTTP-Referer"] = self.REFERER
            headers["X-Title"] = self.TITLE
        return headers

    async def _complete(
        self,
        prompt: str,
        *,
        json_mode: bool = True,
        grounded: bool = False,
    ) -> Completion:
        if not self.is_configured:
            raise ProviderNotConfiguredError(f"{self.name} API key missing", provider_name=self.name)

        body: dict[str, Any] = {
            "model": self.endpoint.model,
            "messages": [
                {"role": "system", "content": prompts.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.TEMPERATURE,
            "max_tokens": self.MAX_TOKENS,
        }
        if json_mode and self.backend == ProviderKind.OPENROUTER:
            body["response_format"] = {"type": "json_object"}

        data = await self._post_json(self.endpoint.url, body, headers=self._headers())
        choices = data.get("choices") or []
        text = ""
        if choices:
            text = (choices[0].get("message") or {}).get("content") or ""
        return Completion(text=text)
