"""LLM provider abstraction module."""

from memoria.providers.base import LLMProvider, LLMResponse
from memoria.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "LiteLLMProvider"]
