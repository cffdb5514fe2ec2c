"""Tests for the LiteLLM provider."""

from types import SimpleNamespace

import pytest

from memoria.providers import litellm_provider
from memoria.providers.litellm_provider import LiteLLMProvider


def _completion(content: str, finish_reason: str = "stop") -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
    )


class TestResolveModel:
    def test_gemini_prefix(self):
        assert LiteLLMProvider()._resolve_model("gemini-2.5-flash") == "gemini/gemini-2.5-flash"

    def test_already_prefixed(self):
        assert LiteLLMProvider()._resolve_model("gemini/gemini-2.5-flash") == "gemini/gemini-2.5-flash"

    def test_openrouter_by_key(self):
        provider = LiteLLMProvider(api_key="sk-or-abc")
        assert provider._resolve_model("anthropic/claude") == "openrouter/anthropic/claude"

    def test_openrouter_by_base(self):
        provider = LiteLLMProvider(api_base="https://openrouter.ai/api/v1")
        assert provider.is_openrouter

    def test_passthrough(self):
        assert LiteLLMProvider()._resolve_model("gpt-4o-mini") == "gpt-4o-mini"


class TestChat:
    @pytest.mark.asyncio
    async def test_request_and_response(self, monkeypatch):
        captured = {}

        async def fake_acompletion(**kwargs):
            captured.update(kwargs)
            return _completion('{"summary": "ok"}')

        monkeypatch.setattr(litellm_provider, "acompletion", fake_acompletion)
        provider = LiteLLMProvider(api_key="test-key-123456", request_timeout_seconds=5.0)

        response = await provider.generate("sys", "user", max_tokens=2000, temperature=0.3)

        assert response.content == '{"summary": "ok"}'
        assert response.finish_reason == "stop"
        assert response.usage["total_tokens"] == 15
        assert not response.is_error
        assert captured["model"] == "gemini/gemini-2.5-flash"
        assert captured["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "user"},
        ]
        assert captured["max_tokens"] == 2000
        assert captured["temperature"] == 0.3
        assert captured["timeout"] == 5.0
        assert captured["api_key"] == "test-key-123456"
        assert "api_base" not in captured
        assert "response_format" not in captured

    @pytest.mark.asyncio
    async def test_json_mode(self, monkeypatch):
        captured = {}

        async def fake_acompletion(**kwargs):
            captured.update(kwargs)
            return _completion("{}")

        monkeypatch.setattr(litellm_provider, "acompletion", fake_acompletion)
        provider = LiteLLMProvider(api_base="http://localhost:4000")

        await provider.chat([{"role": "user", "content": "hi"}], json_mode=True)

        assert captured["response_format"] == {"type": "json_object"}
        assert captured["api_base"] == "http://localhost:4000"
        assert "api_key" not in captured

    @pytest.mark.asyncio
    async def test_error_redacts_key(self, monkeypatch):
        async def failing_acompletion(**kwargs):
            raise RuntimeError(f"auth failed for {kwargs['api_key']}")

        monkeypatch.setattr(litellm_provider, "acompletion", failing_acompletion)
        provider = LiteLLMProvider(api_key="secret-key-abcdef")

        response = await provider.chat([{"role": "user", "content": "hi"}])

        assert response.is_error
        assert "secret-key-abcdef" not in response.content
        assert "***" in response.content

    def test_default_model(self):
        assert LiteLLMProvider(default_model="gpt-4o").get_default_model() == "gpt-4o"
