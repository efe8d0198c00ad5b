from .base import BaseLLMProvider, LLMProviderError
from .openai import OpenAIProvider

__all__ = ["BaseLLMProvider", "LLMProviderError", "OpenAIProvider"]
