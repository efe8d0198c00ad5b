"""
Tests for the OpenAI LLM provider: request shape, error mapping, timeouts.
"""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from openai import APIConnectionError, RateLimitError as OpenAIRateLimitError

from app.services.llm_providers.base import (
    AuthenticationError,
    LLMProviderError,
    ProviderTimeoutError,
    RateLimitError,
)
from app.services.llm_providers.openai import OpenAIProvider


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_response(content='{"ok": true}'):
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    choice.finish_reason = "stop"
    resp = MagicMock()
    resp.id = "chatcmpl-123"
    resp.model = "gpt-3.5-turbo"
    resp.choices = [choice]
    resp.usage = MagicMock(prompt_tokens=120, completion_tokens=60)
    return resp


@pytest.fixture
def provider():
    return OpenAIProvider(api_key="sk-test-key", model="gpt-3.5-turbo", timeout_s=5)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestOpenAIGenerate:

    @pytest.mark.asyncio
    async def test_generate_returns_content(self, provider):
        provider.client.chat.completions.create = AsyncMock(return_value=_make_response("hello"))

        assert await provider.generate("Hi") == "hello"

    @pytest.mark.asyncio
    async def test_generate_passes_params(self, provider):
        provider.client.chat.completions.create = AsyncMock(return_value=_make_response())

        await provider.generate("Analyze this", system_prompt="Only JSON", temperature=0.3, max_tokens=300)

        kwargs = provider.client.chat.completions.create.call_args[1]
        assert kwargs["model"] == "gpt-3.5-turbo"
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 300
        assert kwargs["messages"] == [
            {"role": "system", "content": "Only JSON"},
            {"role": "user", "content": "Analyze this"},
        ]

    @pytest.mark.asyncio
    async def test_no_system_prompt(self, provider):
        provider.client.chat.completions.create = AsyncMock(return_value=_make_response())

        await provider.generate("Hi")

        kwargs = provider.client.chat.completions.create.call_args[1]
        assert kwargs["messages"] == [{"role": "user", "content": "Hi"}]

    @pytest.mark.asyncio
    async def test_empty_content_raises(self, provider):
        provider.client.chat.completions.create = AsyncMock(return_value=_make_response(""))

        with pytest.raises(LLMProviderError, match="Empty response"):
            await provider.generate("Hi")


class TestOpenAIErrors:

    @pytest.mark.asyncio
    async def test_rate_limit_mapped(self, provider):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        response = httpx.Response(429, request=request)
        provider.client.chat.completions.create = AsyncMock(
            side_effect=OpenAIRateLimitError("slow down", response=response, body=None)
        )

        with pytest.raises(RateLimitError):
            await provider.generate("Hi")

    @pytest.mark.asyncio
    async def test_connection_error_mapped(self, provider):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        provider.client.chat.completions.create = AsyncMock(
            side_effect=APIConnectionError(request=request)
        )

        with pytest.raises(LLMProviderError) as exc_info:
            await provider.generate("Hi")
        assert exc_info.value.provider == "openai"
        assert exc_info.value.original_error is not None

    @pytest.mark.asyncio
    async def test_slow_call_times_out(self):
        provider = OpenAIProvider(api_key="sk-test-key", timeout_s=0.05)

        async def _slow(**kwargs):
            await asyncio.sleep(1)

        provider.client.chat.completions.create = _slow

        with pytest.raises(ProviderTimeoutError):
            await provider.generate("Hi")

    def test_missing_key_raises(self, monkeypatch):
        monkeypatch.setattr("app.services.llm_providers.openai.settings.openai_api_key", None)
        with pytest.raises(AuthenticationError):
            OpenAIProvider(api_key=None)


def test_model_info(provider):
    info = provider.get_model_info()
    assert info["provider"] == "openai"
    assert info["model"] == "gpt-3.5-turbo"
    assert info["max_context_window"] == 16_385
