"""Tests for ConversationService against a mocked AsyncSession."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from app.models.conversation import Conversation, Message
from app.services.agent import ToolCallRecord
from app.services.conversations import (
    ConversationNotFoundError,
    ConversationService,
    to_core_messages,
    to_ui_messages,
)

CONVERSATION_ID = uuid.UUID("11111111-2222-3333-4444-555555555555")


def scalar_result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    return result


def rows_result(rows):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


def make_db(*execute_results):
    db = MagicMock()
    db.add = MagicMock()
    db.add_all = MagicMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.execute = AsyncMock(side_effect=list(execute_results) if execute_results else None)
    return db


def compiled(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


class TestMessageShapes:
    def test_core_messages(self):
        messages = [
            Message(role="user", content="hi", sequence=0),
            Message(role="assistant", content="hello", sequence=1),
            Message(
                role="assistant",
                content="done",
                content_parts=[{"type": "text", "text": "done"}, {"type": "tool-invocation"}],
                sequence=2,
            ),
            Message(role="system", content="ignored", sequence=3),
        ]
        assert to_core_messages(messages) == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": [{"type": "text", "text": "hello"}]},
            {
                "role": "assistant",
                "content": [{"type": "text", "text": "done"}, {"type": "tool-invocation"}],
            },
        ]

    def test_ui_messages_prefer_external_id(self):
        row_id = uuid.uuid4()
        messages = [
            Message(id=row_id, role="user", content="hi", sequence=0),
            Message(id=uuid.uuid4(), external_id="msg_1", role="assistant", content="yo", sequence=1),
        ]
        ui = to_ui_messages(messages)
        assert ui[0] == {"id": str(row_id), "role": "user", "content": "hi"}
        assert ui[1]["id"] == "msg_1"


class TestCreateAndLookup:
    @pytest.mark.asyncio
    async def test_create_conversation(self):
        db = make_db()
        service = ConversationService(db)
        conversation = await service.create_conversation(
            conversation_type="content-copilot",
            title="project - Dave",
            context={"documentId": "doc1"},
        )
        assert isinstance(conversation, Conversation)
        assert conversation.context == {"documentId": "doc1"}
        db.add.assert_called_once_with(conversation)
        db.flush.assert_awaited_once()
        db.refresh.assert_awaited_once_with(conversation)

    @pytest.mark.asyncio
    async def test_get_missing_conversation(self):
        service = ConversationService(make_db(scalar_result(None)))
        with pytest.raises(ConversationNotFoundError):
            await service.get_conversation(CONVERSATION_ID)

    @pytest.mark.asyncio
    async def test_invalid_id_is_not_found(self):
        service = ConversationService(make_db())
        with pytest.raises(ConversationNotFoundError):
            await service.get_conversation("not-a-uuid")

    @pytest.mark.asyncio
    async def test_find_latest_uses_jsonb_containment(self):
        db = make_db(scalar_result(None))
        service = ConversationService(db)
        assert await service.find_latest_for_document("doc1", mode="regular") is None
        sql = compiled(db.execute.call_args.args[0])
        assert "@>" in sql
        assert "ORDER BY conversations.updated_at DESC" in sql


class TestSequences:
    @pytest.mark.asyncio
    async def test_first_sequence_is_zero(self):
        service = ConversationService(make_db(scalar_result(None)))
        assert await service.get_next_sequence(CONVERSATION_ID) == 0

    @pytest.mark.asyncio
    async def test_next_sequence(self):
        service = ConversationService(make_db(scalar_result(4)))
        assert await service.get_next_sequence(CONVERSATION_ID) == 5

    @pytest.mark.asyncio
    async def test_append_message_locks_and_sequences(self):
        db = make_db(scalar_result(CONVERSATION_ID), scalar_result(2), MagicMock())
        service = ConversationService(db)
        message = await service.append_message(
            CONVERSATION_ID, role="user", content="hello", external_id="msg_9"
        )
        assert message.sequence == 3
        assert message.external_id == "msg_9"
        lock_sql = compiled(db.execute.call_args_list[0].args[0])
        assert "FOR UPDATE" in lock_sql
        db.flush.assert_awaited()

    @pytest.mark.asyncio
    async def test_append_to_missing_conversation(self):
        db = make_db(scalar_result(None))
        with pytest.raises(ConversationNotFoundError):
            await ConversationService(db).append_message(CONVERSATION_ID, role="user", content="x")
        db.add.assert_not_called()


class TestSaveMessages:
    @pytest.mark.asyncio
    async def test_replaces_history_in_order(self):
        db = make_db(scalar_result(CONVERSATION_ID), rows_result([]), MagicMock())
        rows = await ConversationService(db).save_messages(
            CONVERSATION_ID,
            [
                {"id": "u1", "role": "user", "content": "hi"},
                {"id": "a1", "role": "assistant", "content": [{"type": "text", "text": "hello"}]},
            ],
        )
        assert [row.sequence for row in rows] == [0, 1]
        assert [row.external_id for row in rows] == ["u1", "a1"]
        assert rows[1].content == "hello"
        assert rows[1].content_parts == [{"type": "text", "text": "hello"}]
        db.add_all.assert_called_once_with(rows)

    @pytest.mark.asyncio
    async def test_next_turn_keeps_earlier_rows(self):
        # Tool calls hang off message ids, so earlier rows must not be recreated
        first_user = Message(id=uuid.uuid4(), external_id="u1", role="user", content="hi", sequence=0)
        first_reply = Message(
            id=uuid.uuid4(), external_id="a1", role="assistant", content="done", sequence=1
        )
        db = make_db(scalar_result(CONVERSATION_ID), rows_result([first_user, first_reply]), MagicMock())
        rows = await ConversationService(db).save_messages(
            CONVERSATION_ID,
            [
                {"id": "u1", "role": "user", "content": "hi"},
                {"id": "a1", "role": "assistant", "content": "done"},
                {"id": "u2", "role": "user", "content": "again"},
                {"id": "a2", "role": "assistant", "content": "ok"},
            ],
        )
        assert rows[0] is first_user
        assert rows[1] is first_reply
        assert [row.sequence for row in rows] == [0, 1, 2, 3]
        db.add_all.assert_called_once_with(rows[2:])
        statements = [compiled(call.args[0]) for call in db.execute.call_args_list]
        assert not any("DELETE FROM messages" in sql for sql in statements)

    @pytest.mark.asyncio
    async def test_diverged_history_deletes_only_changed_rows(self):
        kept = Message(id=uuid.uuid4(), external_id="u1", role="user", content="hi", sequence=0)
        replaced = Message(id=uuid.uuid4(), external_id="a1", role="assistant", content="x", sequence=1)
        dropped = Message(id=uuid.uuid4(), external_id="u2", role="user", content="y", sequence=2)
        db = make_db(
            scalar_result(CONVERSATION_ID),
            rows_result([kept, replaced, dropped]),
            MagicMock(),
            MagicMock(),
        )
        rows = await ConversationService(db).save_messages(
            CONVERSATION_ID,
            [
                {"id": "u1", "role": "user", "content": "hi"},
                {"id": "a1-regenerated", "role": "assistant", "content": "z"},
            ],
        )
        assert rows[0] is kept
        assert rows[1] is not replaced
        assert rows[1].external_id == "a1-regenerated"
        delete_stmt = db.execute.call_args_list[2].args[0]
        assert "DELETE FROM messages WHERE messages.id IN" in compiled(delete_stmt)
        assert set(delete_stmt.compile().params.popitem()[1]) == {replaced.id, dropped.id}
        db.add_all.assert_called_once_with([rows[1]])


class TestHousekeeping:
    @pytest.mark.asyncio
    async def test_reset_returns_rowcount(self):
        result = MagicMock()
        result.rowcount = 3
        db = make_db(result)
        assert await ConversationService(db).reset_document_conversations("doc1") == 3
        assert "DELETE FROM conversations" in compiled(db.execute.call_args.args[0])

    @pytest.mark.asyncio
    async def test_log_tool_calls(self):
        db = make_db()
        message_id = uuid.uuid4()
        count = await ConversationService(db).log_tool_calls(
            message_id,
            [ToolCallRecord("c1", "write", {"path": "title"}, {"success": True}, False)],
        )
        assert count == 1
        row = db.add_all.call_args.args[0][0]
        assert row.message_id == message_id
        assert row.tool_name == "write"

    @pytest.mark.asyncio
    async def test_log_no_tool_calls(self):
        db = make_db()
        assert await ConversationService(db).log_tool_calls(uuid.uuid4(), []) == 0
        db.add_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_analytics_upserts(self):
        db = make_db(scalar_result(6), MagicMock())
        await ConversationService(db).update_analytics(CONVERSATION_ID, "test-model", tool_calls=2)
        sql = compiled(db.execute.call_args_list[1].args[0])
        assert "INSERT INTO conversation_analytics" in sql
        assert "ON CONFLICT (conversation_id) DO UPDATE" in sql
