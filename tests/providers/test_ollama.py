"""
Tests for the Ollama backend.

============================================================
PURPOSE
============================================================
Covers:
1. check_connection() model listing
2. Unreachable or malformed servers

============================================================
"""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from providers.backends import OllamaProvider


# ============================================================
# FIXTURES
# ============================================================

def async_context(value):
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=value)
    context.__aexit__ = AsyncMock(return_value=False)
    return context


def patched_session(body=None, status=200, error=None):
    response = MagicMock(status=status)
    response.json = AsyncMock(return_value=body)
    session = MagicMock()
    if error is not None:
        session.get = MagicMock(side_effect=error)
    else:
        session.get = MagicMock(return_value=async_context(response))
    factory = MagicMock(return_value=async_context(session))
    return patch("providers.backends.ollama.aiohttp.ClientSession", factory), session


# ============================================================
# CHECK CONNECTION
# ============================================================

class TestCheckConnection:
    """Tests for OllamaProvider.check_connection()."""

    @pytest.mark.asyncio
    async def test_lists_models(self):
        body = {"models": [{"name": "llama3:latest"}, {"model": "mistral"}, {"size": 1}, "junk"]}
        patcher, session = patched_session(body)

        with patcher:
            reachable, models = await OllamaProvider.check_connection("http://ollama:11434/")

        assert reachable
        assert models == ["llama3:latest", "mistral"]
        session.get.assert_called_once_with("http://ollama:11434/api/tags")

    @pytest.mark.asyncio
    async def test_http_error(self):
        patcher, _ = patched_session({"models": []}, status=500)
        with patcher:
            assert await OllamaProvider.check_connection("http://ollama:11434") == (False, [])

    @pytest.mark.asyncio
    async def test_unreachable(self):
        patcher, _ = patched_session(error=aiohttp.ClientConnectionError("refused"))
        with patcher:
            assert await OllamaProvider.check_connection("http://ollama:11434") == (False, [])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [["llama3"], None, {"models": None}])
    async def test_unexpected_body_lists_nothing(self, body):
        patcher, _ = patched_session(body)
        with patcher:
            assert await OllamaProvider.check_connection("http://ollama:11434") == (True, [])
