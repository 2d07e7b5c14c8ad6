"""Tests for the tool-calling agent loop and its SSE stream."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel

from app.services.agent import (
    AgentResult,
    Tool,
    ToolContext,
    ToolRegistry,
    categorize_error,
    error_result,
    execute_tool,
    message_text,
    run_agent,
    sse,
    to_llm_messages,
)
from app.services.document_editor import ItemNotFoundError
from app.services.sanity import SanityTimeoutError


class EchoArgs(BaseModel):
    text: str


async def echo(args: EchoArgs, ctx: ToolContext) -> dict:
    return {"success": True, "echo": args.text}


async def explode(args: EchoArgs, ctx: ToolContext) -> dict:
    raise RuntimeError("kaboom")


def registry() -> ToolRegistry:
    return ToolRegistry(
        [
            Tool("echo", "Echo text back", EchoArgs, echo),
            Tool("explode", "Always fails", EchoArgs, explode),
        ]
    )


def parse_events(chunks: list[str]) -> list[tuple[str, dict]]:
    events = []
    for chunk in chunks:
        event_line, data_line = chunk.strip().split("\n")
        events.append((event_line.removeprefix("event: "), json.loads(data_line.removeprefix("data: "))))
    return events


async def collect(stream) -> list[tuple[str, dict]]:
    return parse_events([chunk async for chunk in stream])


def chat_response(content="", tool_calls=None):
    return {
        "content": content,
        "tool_calls": tool_calls or [],
        "finish_reason": "stop",
        "model": "test-model",
        "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
        "cost": 0.5,
    }


class TestMessageHelpers:
    def test_message_text_from_parts(self):
        content = [{"type": "text", "text": "a"}, {"type": "tool-invocation"}, {"type": "text", "text": "b"}]
        assert message_text(content) == "ab"

    def test_message_text_none(self):
        assert message_text(None) == ""

    def test_to_llm_messages_filters_roles_and_empty(self):
        messages = [
            {"role": "system", "content": "ignored"},
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "", "parts": [{"type": "text", "text": "from parts"}]},
            {"role": "assistant", "content": ""},
        ]
        assert to_llm_messages(messages) == [
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "from parts"},
        ]

    def test_to_llm_messages_keeps_tool_invocations(self):
        messages = [
            {"role": "user", "content": "fix the title"},
            {
                "role": "assistant",
                "content": "",
                "parts": [
                    {
                        "type": "tool-invocation",
                        "toolInvocation": {
                            "state": "result",
                            "toolCallId": "call_1",
                            "toolName": "write",
                            "args": {"documentId": "doc1", "path": "title", "value": "New"},
                            "result": {"success": True, "path": "title"},
                        },
                    },
                    {"type": "text", "text": "Updated the title."},
                ],
            },
            {"role": "user", "content": "what did you change?"},
        ]
        converted = to_llm_messages(messages)
        assert [m["role"] for m in converted] == ["user", "assistant", "tool", "assistant", "user"]
        call = converted[1]["tool_calls"][0]
        assert converted[1]["content"] is None
        assert call["id"] == "call_1"
        assert call["function"]["name"] == "write"
        assert json.loads(call["function"]["arguments"])["value"] == "New"
        assert converted[2]["tool_call_id"] == "call_1"
        assert json.loads(converted[2]["content"]) == {"success": True, "path": "title"}
        assert converted[3] == {"role": "assistant", "content": "Updated the title."}

    def test_to_llm_messages_skips_unfinished_invocations(self):
        messages = [
            {
                "role": "assistant",
                "content": "Working on it",
                "parts": [
                    {
                        "type": "tool-invocation",
                        "toolInvocation": {"state": "call", "toolCallId": "c", "toolName": "write"},
                    }
                ],
            }
        ]
        assert to_llm_messages(messages) == [{"role": "assistant", "content": "Working on it"}]

    def test_sse_format(self):
        assert sse("token", {"delta": "hi"}) == 'event: token\ndata: {"delta": "hi"}\n\n'


class TestRegistry:
    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            ToolRegistry([Tool("echo", "", EchoArgs, echo), Tool("echo", "", EchoArgs, echo)])

    def test_subset_and_merge(self):
        reg = registry()
        assert reg.subset(["explode", "missing"]).names() == ["explode"]
        merged = reg.subset(["echo"]).merge(reg.subset(["explode"]))
        assert merged.names() == ["echo", "explode"]

    def test_openai_schema(self):
        schema = registry().get("echo").schema()
        assert schema["type"] == "function"
        assert schema["function"]["parameters"]["properties"]["text"]["type"] == "string"


class TestErrors:
    def test_own_error_type(self):
        assert categorize_error(ItemNotFoundError("gone"))["type"] == "ITEM_NOT_FOUND"

    def test_timeout_is_network(self):
        assert categorize_error(SanityTimeoutError())["type"] == "NETWORK_ERROR"

    def test_message_pattern_fallback(self):
        assert categorize_error(Exception("Field tags is not an array"))["type"] == "INVALID_ARRAY"

    def test_unknown_keeps_message(self):
        info = categorize_error(Exception("weird"))
        assert info["type"] == "UNKNOWN_ERROR"
        assert info["message"] == "weird"

    def test_error_result_extra_fields(self):
        result = error_result(Exception("weird"), operation="write", path="title")
        assert result["success"] is False
        assert result["operation"] == "write"
        assert result["path"] == "title"


class TestExecuteTool:
    @pytest.mark.asyncio
    async def test_records_successful_call(self):
        ctx = ToolContext()
        ok, result = await execute_tool(registry(), {"id": "c1", "name": "echo", "arguments": '{"text": "hi"}'}, ctx)
        assert ok is True
        assert result == {"success": True, "echo": "hi"}
        assert ctx.records[0].tool_call_id == "c1"
        assert ctx.records[0].is_error is False

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        ok, result = await execute_tool(registry(), {"id": "c1", "name": "nope", "arguments": {}}, ToolContext())
        assert ok is False
        assert "echo" in result["suggestion"]

    @pytest.mark.asyncio
    async def test_bad_json(self):
        ok, result = await execute_tool(registry(), {"id": "c1", "name": "echo", "arguments": "{oops"}, ToolContext())
        assert ok is False
        assert result["errorType"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_result(self):
        ctx = ToolContext()
        ok, result = await execute_tool(registry(), {"id": "c1", "name": "explode", "arguments": {"text": "x"}}, ctx)
        assert ok is False
        assert result["message"] == "kaboom"
        assert ctx.records[0].is_error is True


class TestRunAgent:
    @pytest.mark.asyncio
    async def test_plain_answer(self):
        llm = MagicMock()
        llm.chat = AsyncMock(return_value=chat_response("Hello there"))
        on_finish = AsyncMock(return_value="msg-1")

        with patch("app.services.agent.get_llm_gateway", return_value=llm):
            events = await collect(
                run_agent(
                    system_prompt="sys",
                    messages=[{"role": "user", "content": "hi"}],
                    registry=registry(),
                    on_finish=on_finish,
                )
            )

        names = [name for name, _ in events]
        assert names[0] == "step"
        assert ("token", {"delta": "Hello there"}) in events
        assert events[-1] == (
            "done",
            {
                "message_id": "msg-1",
                "model": "test-model",
                "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
                "cost": 0.5,
            },
        )
        result: AgentResult = on_finish.call_args.args[0]
        assert result.content == "Hello there"
        assert result.parts == [{"type": "text", "text": "Hello there"}]
        sent = llm.chat.call_args.kwargs["messages"]
        assert sent[0] == {"role": "system", "content": "sys"}

    @pytest.mark.asyncio
    async def test_tool_round_trip(self):
        llm = MagicMock()
        llm.chat = AsyncMock(
            side_effect=[
                chat_response(tool_calls=[{"id": "c1", "name": "echo", "arguments": '{"text": "ping"}'}]),
                chat_response("Done"),
            ]
        )
        on_finish = AsyncMock(return_value=None)

        with patch("app.services.agent.get_llm_gateway", return_value=llm):
            events = await collect(
                run_agent(system_prompt="sys", messages=[], registry=registry(), on_finish=on_finish)
            )

        assert ("tool_call", {"id": "c1", "name": "echo", "args": {"text": "ping"}}) in events
        tool_result = next(data for name, data in events if name == "tool_result")
        assert tool_result["ok"] is True
        assert tool_result["error"] is None

        result: AgentResult = on_finish.call_args.args[0]
        assert [record.name for record in result.tool_calls] == ["echo"]
        assert result.parts[0]["type"] == "tool-invocation"
        assert result.usage["total_tokens"] == 4
        assert result.cost == 1.0

        second_messages = llm.chat.call_args_list[1].kwargs["messages"]
        assert second_messages[-1]["role"] == "tool"
        assert second_messages[-1]["tool_call_id"] == "c1"

    @pytest.mark.asyncio
    async def test_step_budget_streams_final_answer(self):
        call = {"id": "c1", "name": "echo", "arguments": '{"text": "again"}'}
        llm = MagicMock()
        llm.chat = AsyncMock(return_value=chat_response(tool_calls=[call]))

        async def tokens():
            yield "Final "
            yield "answer"

        async def stream(**kwargs):
            future = asyncio.get_running_loop().create_future()
            future.set_result({"model": "stream-model", "usage": None, "cost": None})
            return tokens(), future

        llm.chat_stream_with_usage = AsyncMock(side_effect=stream)

        with patch("app.services.agent.get_llm_gateway", return_value=llm):
            events = await collect(run_agent(system_prompt="sys", messages=[], registry=registry(), max_steps=2))

        assert llm.chat.await_count == 2
        assert llm.chat_stream_with_usage.call_args.kwargs["tool_choice"] == "none"
        deltas = [data["delta"] for name, data in events if name == "token"]
        assert "".join(deltas) == "Final answer"
        assert events[-1][1]["model"] == "stream-model"

    @pytest.mark.asyncio
    async def test_llm_failure_emits_error_event(self):
        llm = MagicMock()
        llm.chat = AsyncMock(side_effect=RuntimeError("provider down"))

        with patch("app.services.agent.get_llm_gateway", return_value=llm):
            events = await collect(run_agent(system_prompt="sys", messages=[], registry=registry()))

        assert events[-1] == ("error", {"detail": "provider down"})
