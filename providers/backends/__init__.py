"""
Provider backends.

- gemini: Google Generative Language API with search grounding
- ollama: local Ollama /api/chat
- openai_compatible: HuggingFace Inference and OpenRouter
"""

from providers.backends.gemini import GeminiProvider
from providers.backends.ollama import OllamaProvider
from providers.backends.openai_compatible import ENDPOINTS, OpenAICompatibleProvider


__all__ = [
    "ENDPOINTS",
    "GeminiProvider",
    "OllamaProvider",
    "OpenAICompatibleProvider",
]
