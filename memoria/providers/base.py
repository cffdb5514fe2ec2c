"""Base LLM provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMResponse:
    """Response from an LLM provider."""
    content: str | None
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.finish_reason == "error"


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implementations handle the transport; callers own prompt construction
    and response parsing.
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (provider-specific).
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.
            json_mode: Ask the model for a JSON object, where supported.

        Returns:
            LLMResponse with the generated content.
        """
        pass

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        **options: Any,
    ) -> LLMResponse:
        """
        Single-turn generation from a system and a user prompt.

        Args:
            system_prompt: Instructions for the model.
            user_prompt: The request itself.
            **options: Passed through to chat() (model, max_tokens, temperature,
                json_mode).

        Returns:
            LLMResponse with the generated content.
        """
        return await self.chat(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            **options,
        )

    @abstractmethod
    def get_default_model(self) -> str:
        """Get the default model for this provider."""
        pass
