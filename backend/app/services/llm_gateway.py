"""LiteLLM gateway used by the assistants and the embedding jobs.

Models are addressed with a provider prefix (``anthropic/...``,
``openai/...``). LiteLLM is imported on first use; it pulls in aiohttp
and a large provider table that the scripts and tests rarely need.
"""

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from types import ModuleType
from typing import Any
from urllib.parse import urlparse

from app.core.config import settings

logger = logging.getLogger(__name__)

_configured = False


def _litellm() -> ModuleType:
    """Import and configure LiteLLM once per process."""
    global _configured
    import litellm

    if not _configured:
        if settings.debug:
            os.environ["LITELLM_LOG"] = "DEBUG"
        litellm.drop_params = True
        # LiteLLM's own callback workers time out and flood the log
        litellm.success_callback = []
        litellm.failure_callback = []
        _configured = True
        logger.debug("LiteLLM configured")
    return litellm


class LLMError(Exception):
    """Raised when no model produced a response."""


def _usage_dict(usage_obj: Any) -> dict[str, int] | None:
    if usage_obj is None:
        return None
    return {
        key: getattr(usage_obj, key, 0) or 0
        for key in ("prompt_tokens", "completion_tokens", "total_tokens")
    }


def _tool_calls_from_message(message: Any) -> list[dict[str, Any]]:
    """OpenAI-format tool calls as ``{id, name, arguments}`` dicts."""
    return [
        {
            "id": call.id,
            "name": call.function.name,
            "arguments": call.function.arguments or "{}",
        }
        for call in getattr(message, "tool_calls", None) or []
    ]


def _cost(litellm: ModuleType, response: Any) -> float | None:
    try:
        return litellm.completion_cost(response)
    except Exception:
        # Unknown or self-hosted models have no price table entry
        return None


def has_api_key(model: str) -> bool:
    """Whether the provider behind ``model`` has a key configured."""
    provider = model.split("/", 1)[0]
    key = {
        "anthropic": settings.anthropic_api_key,
        "openai": settings.openai_api_key,
    }.get(provider)
    return bool(key)


class LLMGateway:
    """Chat, streaming and embedding calls through LiteLLM."""

    # Tried in order after the requested model fails
    FALLBACK_MODELS = [
        "anthropic/claude-3-5-sonnet-20241022",
        "openai/gpt-4o",
    ]

    def __init__(self):
        # LiteLLM reads provider keys from the environment
        if settings.openai_api_key:
            os.environ["OPENAI_API_KEY"] = settings.openai_api_key
        if settings.anthropic_api_key:
            os.environ["ANTHROPIC_API_KEY"] = settings.anthropic_api_key
        if settings.redis_url:
            self._enable_cache(settings.redis_url)

    @staticmethod
    def _enable_cache(redis_url: str) -> None:
        try:
            litellm = _litellm()
            parsed = urlparse(redis_url)
            litellm.cache = litellm.Cache(
                type="redis",
                host=parsed.hostname or "localhost",
                port=str(parsed.port or 6379),
                password=parsed.password,
            )
            logger.info("LiteLLM Redis cache enabled")
        except Exception as e:
            logger.warning(f"Redis cache unavailable, continuing without it: {e}")

    def fallbacks_for(self, model: str) -> list[str]:
        """Fallback models other than ``model`` whose provider has a key."""
        return [m for m in self.FALLBACK_MODELS if m != model and has_api_key(m)]

    async def chat(
        self,
        messages: list[dict],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        tools: list[dict[str, Any]] | None = None,
        fallback: bool = True,
        **kwargs,
    ) -> dict[str, Any]:
        """One completion, optionally offering tools.

        Returns:
            ``{content, tool_calls, finish_reason, model, usage, cost}``
        """
        litellm = _litellm()
        model = model or settings.default_chat_model
        params: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs,
        }
        if tools:
            params["tools"] = tools
            params["tool_choice"] = "auto"
        if fallback and (fallbacks := self.fallbacks_for(model)):
            params["fallbacks"] = fallbacks

        try:
            response = await litellm.acompletion(**params)
        except Exception as e:
            logger.error(f"Completion failed for {model}: {e}")
            raise LLMError(f"All models failed: {e}") from e

        choice = response.choices[0]
        return {
            "content": choice.message.content or "",
            "tool_calls": _tool_calls_from_message(choice.message),
            "finish_reason": choice.finish_reason,
            "model": response.model,
            "usage": _usage_dict(response.usage),
            "cost": _cost(litellm, response),
        }

    async def chat_stream_with_usage(
        self,
        messages: list[dict],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        **kwargs,
    ) -> tuple[AsyncIterator[str], "asyncio.Future[dict[str, Any]]"]:
        """Stream text deltas; the future resolves to ``{model, usage, cost}``
        once the iterator is exhausted."""
        litellm = _litellm()
        model = model or settings.default_chat_model
        stats: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()

        async def tokens() -> AsyncIterator[str]:
            final = {"model": model, "usage": None, "cost": None}
            try:
                response = await litellm.acompletion(
                    model=model,
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    stream=True,
                    stream_options={"include_usage": True},
                    **kwargs,
                )
                async for chunk in response:
                    if getattr(chunk, "model", None):
                        final["model"] = chunk.model
                    # Usage usually arrives on the last chunk only
                    if getattr(chunk, "usage", None) is not None:
                        final["usage"] = _usage_dict(chunk.usage)
                        final["cost"] = _cost(litellm, chunk)
                    delta = chunk.choices[0].delta if chunk.choices else None
                    if delta and delta.content:
                        yield delta.content
            except Exception as e:
                if not stats.done():
                    stats.set_exception(e)
                logger.error(f"Streaming failed for {model}: {e}")
                raise LLMError(f"Streaming failed: {e}") from e
            if not stats.done():
                stats.set_result(final)

        return tokens(), stats

    async def chat_stream(self, messages: list[dict], **kwargs) -> AsyncIterator[str]:
        """Text deltas only."""
        tokens, stats = await self.chat_stream_with_usage(messages, **kwargs)
        async for token in tokens:
            yield token
        await stats

    async def embed(self, texts: list[str] | str, model: str | None = None) -> list[list[float]]:
        """Embedding vectors for one or more texts, in input order."""
        litellm = _litellm()
        model = model or settings.embedding_model
        params: dict[str, Any] = {
            "model": model,
            "input": [texts] if isinstance(texts, str) else texts,
        }
        if model.startswith("openai/text-embedding-3"):
            # Must match the Qdrant collection size
            params["dimensions"] = settings.embedding_dimensions

        try:
            response = await litellm.aembedding(**params)
        except Exception as e:
            logger.error(f"Embedding failed for {model}: {e}")
            raise LLMError(f"Embedding failed: {e}") from e
        return [item["embedding"] for item in response.data]


_llm_gateway: LLMGateway | None = None


def get_llm_gateway() -> LLMGateway:
    global _llm_gateway
    if _llm_gateway is None:
        _llm_gateway = LLMGateway()
    return _llm_gateway
