"""
LLM Provider Base Class
=======================

Abstract base class and exceptions for remote LLM providers.
Enforces a consistent interface for chat-style generation.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class LLMProviderError(Exception):
    """Base exception for LLM provider errors."""

    def __init__(self, message: str, provider: str = "unknown", original_error: Exception = None):
        self.message = message
        self.provider = provider
        self.original_error = original_error
        super().__init__(self.message)


class RateLimitError(LLMProviderError):
    """Raised when provider rate limit is exceeded."""
    pass


class AuthenticationError(LLMProviderError):
    """Raised when API key is invalid or missing."""
    pass


class ProviderTimeoutError(LLMProviderError):
    """Raised when the remote call exceeds its time budget."""
    pass


class BaseLLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implementations must handle:
    - Non-streaming generation with an optional system prompt
    - A bounded request time
    - Error mapping to the exceptions above
    """

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        **kwargs
    ) -> str:
        """
        Generate a complete response string.

        Args:
            prompt: The user prompt to respond to
            system_prompt: Optional system instructions
            temperature: Sampling temperature (0.0-1.0)
            max_tokens: Maximum tokens in response

        Returns:
            Generated text response

        Raises:
            LLMProviderError: On generation failure
        """
        pass

    @abstractmethod
    def get_model_info(self) -> Dict[str, Any]:
        """Return metadata about the configured model."""
        pass
