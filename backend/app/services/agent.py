"""Tool-calling agent loop streamed as Server-Sent Events.

Structured SSE events:
  - event: step         data: {"title": "...", "detail": "..."}
  - event: tool_call    data: {"id": "...", "name": "...", "args": {...}}
  - event: tool_result  data: {"id": "...", "name": "...", "ok": true, "result": {...}, "error": "..."}
  - event: token        data: {"delta": "..."}
  - event: done         data: {"message_id": "...", "model": "...", "usage": {...}, "cost": 0.0}
  - event: error        data: {"detail": "..."}
"""

import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from app.services.document_editor import DocumentEditError
from app.services.llm_gateway import get_llm_gateway
from app.services.sanity import (
    SanityAuthenticationError,
    SanityNotFoundError,
    SanityPermissionError,
    SanityTimeoutError,
)

logger = logging.getLogger(__name__)

MAX_TOOL_RESULT_CHARS = 50_000
TOKEN_CHUNK_CHARS = 200

ERROR_TYPES = {
    "DOCUMENT_NOT_FOUND": "The specified document does not exist",
    "PATH_NOT_FOUND": "The path does not exist in the document",
    "VALIDATION_ERROR": "The value does not match schema requirements",
    "PERMISSION_DENIED": "Insufficient permissions for this operation",
    "ITEM_NOT_FOUND": "The specified array item was not found",
    "INVALID_ARRAY": "The path exists but is not an array",
    "INVALID_OPERATION": "The operation is not valid for this path",
    "NETWORK_ERROR": "Connection to Sanity failed",
    "UNKNOWN_ERROR": "An unknown error occurred",
}

ERROR_SUGGESTIONS = {
    "DOCUMENT_NOT_FOUND": "Check that the document ID is correct and the document exists.",
    "PATH_NOT_FOUND": "Verify that the path exists in the document structure.",
    "VALIDATION_ERROR": "Ensure the value matches the expected schema type and constraints.",
    "PERMISSION_DENIED": "This operation requires different permissions.",
    "ITEM_NOT_FOUND": "Query the document to find the current index or _key of the item.",
    "INVALID_ARRAY": "The specified path must point to an array field.",
    "INVALID_OPERATION": "Use one of the supported operations for this field.",
    "NETWORK_ERROR": "Check your network connection and try again.",
    "UNKNOWN_ERROR": "Try with a simpler operation or check the document structure.",
}

# Substring fallbacks for errors raised outside our own hierarchy
_MESSAGE_PATTERNS = [
    (("document not found",), "DOCUMENT_NOT_FOUND"),
    (("not found in document", "cannot be found"), "PATH_NOT_FOUND"),
    (("validation failed", "validationerror"), "VALIDATION_ERROR"),
    (("permission", "not authorized"), "PERMISSION_DENIED"),
    (("item not found",), "ITEM_NOT_FOUND"),
    (("not an array",), "INVALID_ARRAY"),
    (("invalid operation",), "INVALID_OPERATION"),
    (("network", "connection"), "NETWORK_ERROR"),
]


def categorize_error(error: BaseException) -> dict[str, str]:
    """Classify an exception into an error type the model can act on."""
    message = str(error)
    if isinstance(error, DocumentEditError):
        error_type = error.error_type
    elif isinstance(error, SanityNotFoundError):
        error_type = "DOCUMENT_NOT_FOUND"
    elif isinstance(error, (SanityPermissionError, SanityAuthenticationError)):
        error_type = "PERMISSION_DENIED"
    elif isinstance(error, (SanityTimeoutError, httpx.TransportError)):
        error_type = "NETWORK_ERROR"
    elif isinstance(error, ValidationError):
        error_type = "VALIDATION_ERROR"
    else:
        lowered = message.lower()
        error_type = next(
            (kind for needles, kind in _MESSAGE_PATTERNS if any(n in lowered for n in needles)),
            "UNKNOWN_ERROR",
        )

    return {
        "type": error_type,
        "message": message if error_type == "UNKNOWN_ERROR" else ERROR_TYPES[error_type],
        "detail": message,
        "suggestion": ERROR_SUGGESTIONS[error_type],
    }


def error_result(error: BaseException, operation: str | None = None, **extra: Any) -> dict[str, Any]:
    """Structured failure returned to the model instead of raising."""
    info = categorize_error(error)
    result: dict[str, Any] = {
        "success": False,
        "errorType": info["type"],
        "errorMessage": info["message"],
        "message": info["detail"],
        "suggestion": info["suggestion"],
    }
    if operation:
        result["operation"] = operation
    result.update(extra)
    return result


@dataclass
class ToolCallRecord:
    """One executed tool call, kept for the tool_calls audit table."""

    tool_call_id: str
    name: str
    arguments: dict[str, Any]
    result: Any
    is_error: bool


@dataclass
class ToolContext:
    """Per-run state shared with tool handlers."""

    tool_call_id: str = ""
    records: list[ToolCallRecord] = field(default_factory=list)


ToolHandler = Callable[[Any, ToolContext], Awaitable[dict[str, Any]]]


@dataclass
class Tool:
    """A function the model may call, with pydantic-validated arguments."""

    name: str
    description: str
    parameters: type[BaseModel]
    handler: ToolHandler

    def schema(self) -> dict[str, Any]:
        params = self.parameters.model_json_schema(by_alias=True)
        params.pop("title", None)
        params.setdefault("properties", {})
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": params,
            },
        }


class ToolRegistry:
    """Named collection of tools offered to one assistant."""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Duplicate tool name: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def subset(self, names: Iterable[str]) -> "ToolRegistry":
        return ToolRegistry(self._tools[name] for name in names if name in self._tools)

    def merge(self, other: "ToolRegistry") -> "ToolRegistry":
        return ToolRegistry([*self._tools.values(), *(other.get(n) for n in other.names())])

    def openai_tools(self) -> list[dict[str, Any]]:
        return [tool.schema() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools


async def execute_tool(
    registry: ToolRegistry,
    call: dict[str, Any],
    ctx: ToolContext,
) -> tuple[bool, dict[str, Any]]:
    """Run one model-requested call. Never raises; failures become results."""
    name = call.get("name", "")
    call_id = call.get("id") or ""
    raw_args = call.get("arguments") or {}
    started = time.monotonic()

    if isinstance(raw_args, str):
        try:
            raw_args = json.loads(raw_args or "{}")
        except json.JSONDecodeError as e:
            raw_args = {}
            result = error_result(ValueError(f"validation failed: arguments are not valid JSON ({e})"))
            ctx.records.append(ToolCallRecord(call_id, name, raw_args, result, True))
            return False, result

    tool = registry.get(name)
    if tool is None:
        result = {
            "success": False,
            "errorType": "INVALID_OPERATION",
            "message": f"Unknown tool: {name}",
            "suggestion": f"Use one of: {', '.join(registry.names())}",
        }
    else:
        ctx.tool_call_id = call_id
        try:
            args = tool.parameters.model_validate(raw_args)
        except ValidationError as e:
            result = error_result(e)
        else:
            try:
                result = await tool.handler(args, ctx)
            except Exception as e:
                logger.exception(f"Tool {name} failed")
                result = error_result(e)

    ok = result.get("success", True) is not False
    ctx.records.append(ToolCallRecord(call_id, name, raw_args, result, not ok))
    logger.info(
        f"Tool call: {name}",
        extra={
            "tool_name": name,
            "tool_call_id": call_id,
            "ok": ok,
            "latency_ms": int((time.monotonic() - started) * 1000),
            "arguments": json.dumps(raw_args, default=str)[:500],
            "result_preview": json.dumps(result, default=str)[:500],
        },
    )
    return ok, result


def sse(event: str, payload: dict) -> str:
    return f"event: {event}\n" + "data: " + json.dumps(payload, default=str) + "\n\n"


def _step(title: str, detail: str | None = None) -> str:
    payload = {"title": title}
    if detail:
        payload["detail"] = detail
    return sse("step", payload)


def message_text(content: Any) -> str:
    """Text of a UI message's content (plain string or list of parts)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return "" if content is None else str(content)


def _tool_invocation(part: dict[str, Any]) -> dict[str, Any] | None:
    """The finished invocation in a UI ``tool-invocation`` part, if any."""
    if not isinstance(part, dict) or part.get("type") != "tool-invocation":
        return None
    invocation = part.get("toolInvocation") or {}
    if invocation.get("state") != "result" or not invocation.get("toolCallId"):
        return None
    return invocation


def _assistant_turn(message: dict[str, Any]) -> list[dict[str, Any]]:
    """Expand one assistant UI message into assistant/tool messages.

    Text before a run of tool invocations becomes the content of the
    assistant message carrying those ``tool_calls``; each invocation's
    result follows as a ``tool`` message.
    """
    content = message.get("content")
    parts = message.get("parts") or (content if isinstance(content, list) else None)
    if not parts:
        text = message_text(content)
        return [{"role": "assistant", "content": text}] if text else []

    if isinstance(content, str) and content and not any(
        isinstance(p, dict) and p.get("type") == "text" for p in parts
    ):
        parts = [{"type": "text", "text": content}, *parts]

    converted: list[dict[str, Any]] = []
    text: list[str] = []
    calls: list[dict[str, Any]] = []
    results: list[dict[str, Any]] = []

    def flush() -> None:
        joined = "".join(text)
        if calls:
            converted.append({"role": "assistant", "content": joined or None, "tool_calls": list(calls)})
            converted.extend(results)
        elif joined:
            converted.append({"role": "assistant", "content": joined})
        text.clear()
        calls.clear()
        results.clear()

    for part in parts:
        if isinstance(part, dict) and part.get("type") == "text":
            if calls:
                flush()
            text.append(part.get("text", ""))
            continue
        invocation = _tool_invocation(part)
        if invocation is None:
            continue
        call_id = invocation["toolCallId"]
        calls.append(
            {
                "id": call_id,
                "type": "function",
                "function": {
                    "name": invocation.get("toolName", ""),
                    "arguments": json.dumps(invocation.get("args") or {}, default=str),
                },
            }
        )
        results.append(
            {
                "role": "tool",
                "tool_call_id": call_id,
                "content": json.dumps(_preview(invocation.get("result")), default=str),
            }
        )
    flush()
    return converted


def to_llm_messages(messages: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Client UI messages as chat messages, tool invocations included."""
    converted: list[dict[str, Any]] = []
    for message in messages:
        role = message.get("role")
        if role == "assistant":
            converted.extend(_assistant_turn(message))
        elif role == "user":
            text = message_text(message.get("content"))
            if not text and message.get("parts"):
                text = message_text(message["parts"])
            if text:
                converted.append({"role": "user", "content": text})
    return converted


@dataclass
class AgentResult:
    """Final state of one agent run, handed to ``on_finish``."""

    content: str
    parts: list[dict[str, Any]]
    tool_calls: list[ToolCallRecord]
    model: str | None
    usage: dict[str, int] | None
    cost: float | None


def _add_usage(total: dict[str, int] | None, usage: dict[str, int] | None) -> dict[str, int] | None:
    if not usage:
        return total
    if total is None:
        return dict(usage)
    return {key: total.get(key, 0) + usage.get(key, 0) for key in set(total) | set(usage)}


def _preview(result: dict[str, Any]) -> dict[str, Any]:
    encoded = json.dumps(result, default=str)
    if len(encoded) > MAX_TOOL_RESULT_CHARS:
        return {"truncated": True, "preview": encoded[:MAX_TOOL_RESULT_CHARS]}
    return result


async def run_agent(
    *,
    system_prompt: str,
    messages: list[dict[str, Any]],
    registry: ToolRegistry,
    model: str | None = None,
    max_steps: int = 5,
    temperature: float = 0.7,
    max_tokens: int = 1000,
    ctx: ToolContext | None = None,
    on_finish: Callable[[AgentResult], Awaitable[str | None]] | None = None,
) -> AsyncIterator[str]:
    """Run the tool loop and yield SSE strings.

    The model is called without streaming while it keeps requesting tools.
    A plain-text answer is streamed in chunks; if the step budget runs out
    a final streaming call produces the answer. ``on_finish`` runs before
    the ``done`` event and may return the persisted message id.
    """
    llm = get_llm_gateway()
    ctx = ctx or ToolContext()
    tools = registry.openai_tools() if len(registry) else None

    convo: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}, *messages]
    parts: list[dict[str, Any]] = []
    text_chunks: list[str] = []
    usage: dict[str, int] | None = None
    cost: float | None = None
    final_model = model

    def _emit_text(text: str):
        for chunk in [text[i:i + TOKEN_CHUNK_CHARS] for i in range(0, len(text), TOKEN_CHUNK_CHARS)]:
            text_chunks.append(chunk)
            yield sse("token", {"delta": chunk})

    try:
        steps = 0
        final_answer: str | None = None

        while steps < max_steps:
            yield _step(
                f"Reasoning{f' ({steps + 1})' if steps > 0 else ''}",
                "Processing with AI model",
            )
            resp = await llm.chat(
                messages=convo,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                tools=tools,
            )
            usage = _add_usage(usage, resp.get("usage"))
            if resp.get("cost") is not None:
                cost = (cost or 0.0) + resp["cost"]
            final_model = resp.get("model") or final_model

            content = resp.get("content") or ""
            calls = resp.get("tool_calls") or []
            if not calls:
                final_answer = content
                break

            steps += 1
            if content:
                parts.append({"type": "text", "text": content})
                for event in _emit_text(content):
                    yield event

            convo.append(
                {
                    "role": "assistant",
                    "content": content or None,
                    "tool_calls": [
                        {
                            "id": call["id"],
                            "type": "function",
                            "function": {"name": call["name"], "arguments": call["arguments"]},
                        }
                        for call in calls
                    ],
                }
            )

            for call in calls:
                try:
                    args = json.loads(call["arguments"] or "{}")
                except json.JSONDecodeError:
                    args = {}
                yield sse("tool_call", {"id": call["id"], "name": call["name"], "args": args})

                ok, result = await execute_tool(registry, call, ctx)
                yield sse(
                    "tool_result",
                    {
                        "id": call["id"],
                        "name": call["name"],
                        "ok": ok,
                        "result": _preview(result),
                        "error": None if ok else result.get("message") or result.get("errorMessage"),
                    },
                )
                parts.append(
                    {
                        "type": "tool-invocation",
                        "toolInvocation": {
                            "state": "result",
                            "toolCallId": call["id"],
                            "toolName": call["name"],
                            "args": args,
                            "result": result,
                        },
                    }
                )
                convo.append(
                    {
                        "role": "tool",
                        "tool_call_id": call["id"],
                        "content": json.dumps(_preview(result), default=str),
                    }
                )

        if final_answer is not None:
            yield _step("Formatting", "Preparing response")
            if final_answer:
                parts.append({"type": "text", "text": final_answer})
                for event in _emit_text(final_answer):
                    yield event
        else:
            yield _step("Answering", "Streaming final response")
            convo.append(
                {
                    "role": "user",
                    "content": "Provide the final answer now in plain text based on the tool results above.",
                }
            )
            extra = {"tools": tools, "tool_choice": "none"} if tools else {}
            token_iter, final_stats_future = await llm.chat_stream_with_usage(
                messages=convo,
                model=model,
                temperature=temperature,
                max_tokens=max_tokens,
                **extra,
            )
            streamed: list[str] = []
            async for chunk in token_iter:
                streamed.append(chunk)
                text_chunks.append(chunk)
                yield sse("token", {"delta": chunk})
            if streamed:
                parts.append({"type": "text", "text": "".join(streamed)})

            try:
                final_stats = await final_stats_future
            except Exception:
                final_stats = None
            if final_stats:
                final_model = final_stats.get("model") or final_model
                usage = _add_usage(usage, final_stats.get("usage"))
                if final_stats.get("cost") is not None:
                    cost = (cost or 0.0) + final_stats["cost"]

        result = AgentResult(
            content="".join(text_chunks),
            parts=parts,
            tool_calls=ctx.records,
            model=final_model,
            usage=usage,
            cost=cost,
        )
        message_id = await on_finish(result) if on_finish else None

        yield sse(
            "done",
            {
                "message_id": message_id,
                "model": final_model,
                "usage": usage,
                "cost": cost,
            },
        )
    except Exception as e:
        logger.exception("Agent streaming failed")
        yield sse("error", {"detail": str(e)})
