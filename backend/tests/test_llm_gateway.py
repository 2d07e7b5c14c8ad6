"""Tests for the LiteLLM gateway wrapper."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.services.llm_gateway import (
    LLMError,
    LLMGateway,
    _tool_calls_from_message,
    _usage_dict,
    has_api_key,
)


def completion(content="", tool_calls=None, model="anthropic/claude-3-5-sonnet-20241022"):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason="tool_calls" if tool_calls else "stop")],
        model=model,
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
    )


class TestHelpers:
    def test_usage_dict(self):
        usage = SimpleNamespace(prompt_tokens=3, completion_tokens=None, total_tokens=3)
        assert _usage_dict(usage) == {"prompt_tokens": 3, "completion_tokens": 0, "total_tokens": 3}
        assert _usage_dict(None) is None

    def test_tool_calls_normalized(self):
        call = SimpleNamespace(id="c1", function=SimpleNamespace(name="query", arguments=None))
        message = SimpleNamespace(tool_calls=[call])
        assert _tool_calls_from_message(message) == [{"id": "c1", "name": "query", "arguments": "{}"}]

    def test_no_tool_calls(self):
        assert _tool_calls_from_message(SimpleNamespace(tool_calls=None)) == []


class TestChat:
    def setup_method(self):
        self.gateway = LLMGateway()

    @pytest.mark.asyncio
    async def test_chat_returns_content_and_usage(self):
        with patch("litellm.acompletion", new=AsyncMock(return_value=completion("Hi"))), patch(
            "litellm.completion_cost", return_value=0.001
        ):
            result = await self.gateway.chat([{"role": "user", "content": "hello"}], fallback=False)

        assert result["content"] == "Hi"
        assert result["tool_calls"] == []
        assert result["usage"]["total_tokens"] == 15
        assert result["cost"] == 0.001

    @pytest.mark.asyncio
    async def test_tools_enable_auto_choice(self):
        call = SimpleNamespace(id="c1", function=SimpleNamespace(name="query", arguments='{"type":"project"}'))
        mock_completion = AsyncMock(return_value=completion(tool_calls=[call]))
        tools = [{"type": "function", "function": {"name": "query", "parameters": {}}}]
        with patch("litellm.acompletion", new=mock_completion), patch(
            "litellm.completion_cost", side_effect=Exception("unknown model")
        ):
            result = await self.gateway.chat([], tools=tools, fallback=False)

        params = mock_completion.call_args.kwargs
        assert params["tools"] == tools
        assert params["tool_choice"] == "auto"
        assert result["tool_calls"][0]["name"] == "query"
        assert result["cost"] is None

    @pytest.mark.asyncio
    async def test_failure_raises_llm_error(self):
        with patch("litellm.acompletion", new=AsyncMock(side_effect=RuntimeError("down"))):
            with pytest.raises(LLMError):
                await self.gateway.chat([], fallback=False)

    def test_fallbacks_need_keys(self):
        with patch("app.services.llm_gateway.settings") as mock_settings:
            mock_settings.openai_api_key = ""
            mock_settings.anthropic_api_key = "k"
            assert self.gateway.fallbacks_for("openai/gpt-4o") == ["anthropic/claude-3-5-sonnet-20241022"]
            assert self.gateway.fallbacks_for("anthropic/claude-3-5-sonnet-20241022") == []

    def test_has_api_key_unknown_provider(self):
        assert has_api_key("ollama/llama3") is False


class TestEmbed:
    @pytest.mark.asyncio
    async def test_embed_single_text(self):
        response = MagicMock()
        response.data = [{"embedding": [0.5, 0.25]}]
        mock_embedding = AsyncMock(return_value=response)
        with patch("litellm.aembedding", new=mock_embedding):
            vectors = await LLMGateway().embed("hello", model="openai/text-embedding-3-small")

        assert vectors == [[0.5, 0.25]]
        params = mock_embedding.call_args.kwargs
        assert params["input"] == ["hello"]
        assert "dimensions" in params
