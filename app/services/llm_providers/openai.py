"""
OpenAI LLM Provider
===================

OpenAI implementation of BaseLLMProvider.
Uses official openai SDK with async support. Retries are disabled: a
failed call is reported immediately so callers can degrade instead.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from openai import (
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError as OpenAIAuthError,
    RateLimitError as OpenAIRateLimitError,
)

from app.config import settings
from .base import (
    AuthenticationError,
    BaseLLMProvider,
    LLMProviderError,
    ProviderTimeoutError,
    RateLimitError,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """
    OpenAI LLM provider using official SDK.

    Defaults to gpt-3.5-turbo; any chat-completions model works.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ):
        api_key = api_key or settings.openai_api_key
        if not api_key:
            raise AuthenticationError(
                "OpenAI API key not found. Set FEEDBACK_OPENAI_API_KEY in environment.",
                provider="openai",
            )

        self.timeout_s = timeout_s or settings.llm_timeout_s
        self.client = AsyncOpenAI(api_key=api_key, timeout=self.timeout_s, max_retries=0)
        self.model_name = model or settings.llm_model or "gpt-3.5-turbo"

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        **kwargs
    ) -> str:
        """Generate a complete response using OpenAI Chat Completions."""
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model_name,
                    messages=self._build_messages(prompt, system_prompt),
                    temperature=temperature,
                    max_tokens=max_tokens,
                    stream=False,
                ),
                timeout=self.timeout_s,
            )
        except (asyncio.TimeoutError, APITimeoutError) as e:
            raise ProviderTimeoutError(
                f"OpenAI request timed out after {self.timeout_s}s",
                provider="openai",
                original_error=e,
            )
        except OpenAIRateLimitError as e:
            raise RateLimitError(
                "OpenAI API rate limit exceeded.",
                provider="openai",
                original_error=e,
            )
        except OpenAIAuthError as e:
            raise AuthenticationError(
                "OpenAI API key is invalid.",
                provider="openai",
                original_error=e,
            )
        except APIError as e:
            raise LLMProviderError(
                f"OpenAI API error: {str(e)}",
                provider="openai",
                original_error=e,
            )
        except Exception as e:
            raise LLMProviderError(
                f"OpenAI generation failed: {str(e)}",
                provider="openai",
                original_error=e,
            )

        self._log_response_metadata(response)

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMProviderError("Empty response from OpenAI", provider="openai")
        return content

    def _build_messages(self, prompt: str, system_prompt: Optional[str]) -> list:
        """Build chat messages list with optional system prompt."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _log_response_metadata(self, response: Any) -> None:
        # Metadata only; message content may echo user text
        usage = getattr(response, "usage", None)
        logger.info(
            "openai_response",
            extra={
                "llm.response_id": getattr(response, "id", None),
                "llm.model": getattr(response, "model", None),
                "llm.finish_reasons": [
                    getattr(c, "finish_reason", None) for c in (response.choices or [])
                ],
                "llm.prompt_tokens": getattr(usage, "prompt_tokens", None),
                "llm.completion_tokens": getattr(usage, "completion_tokens", None),
            },
        )

    def get_model_info(self) -> Dict[str, Any]:
        """Return OpenAI model metadata."""
        context_windows = {
            "gpt-4o": 128_000,
            "gpt-4o-mini": 128_000,
            "gpt-4-turbo": 128_000,
            "gpt-4": 8_192,
            "gpt-3.5-turbo": 16_385,
        }

        return {
            "provider": "openai",
            "model": self.model_name,
            "capabilities": ["generate", "chat"],
            "max_context_window": context_windows.get(self.model_name, 16_385),
        }
