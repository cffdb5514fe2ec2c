"""LiteLLM provider implementation for multi-provider support."""

from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from memoria.providers.base import LLMProvider, LLMResponse


class LiteLLMProvider(LLMProvider):
    """
    Summarization provider backed by LiteLLM.

    Any model LiteLLM can route (Gemini, OpenRouter, OpenAI, Anthropic, ...)
    can produce memory summaries. Transport failures are reported as an
    error response rather than raised.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "gemini/gemini-2.5-flash",
        request_timeout_seconds: float = 45.0,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.request_timeout_seconds = request_timeout_seconds

        # OpenRouter is detected by key prefix or base URL
        self.is_openrouter = bool(
            (api_key and api_key.startswith("sk-or-")) or
            (api_base and "openrouter" in api_base)
        )

        litellm.suppress_debug_info = True

    def _resolve_model(self, model: str) -> str:
        """Apply the routing prefix LiteLLM expects."""
        if self.is_openrouter and not model.startswith("openrouter/"):
            return f"openrouter/{model}"
        if "gemini" in model.lower() and not model.startswith("gemini/"):
            return f"gemini/{model}"
        return model

    def _redact(self, text: str) -> str:
        """Hide the API key in error text."""
        if self.api_key and len(self.api_key) > 8:
            return text.replace(self.api_key, "***")
        return text

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (e.g., 'gemini/gemini-2.5-flash').
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.
            json_mode: Ask the model for a JSON object.

        Returns:
            LLMResponse with content; finish_reason is "error" on failure.
        """
        request: dict[str, Any] = {
            "model": self._resolve_model(model or self.default_model),
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "timeout": self.request_timeout_seconds,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}
        if self.api_base:
            request["api_base"] = self.api_base
        if self.api_key:
            request["api_key"] = self.api_key

        try:
            response = await acompletion(**request)
        except Exception as e:
            error_msg = self._redact(str(e))
            logger.error(f"LLM call error ({request['model']}): {error_msg}")
            return LLMResponse(content=f"Error calling LLM: {error_msg}", finish_reason="error")

        return self._parse_response(response)

    def _parse_response(self, response: Any) -> LLMResponse:
        """Convert a LiteLLM completion into an LLMResponse."""
        choice = response.choices[0]

        usage: dict[str, int] = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=choice.message.content,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        """Get the default model."""
        return self.default_model
