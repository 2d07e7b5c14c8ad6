"""Conversation persistence for the content copilot and chat history routes.

Methods flush but do not commit; the caller owns the transaction
(``get_db`` for plain routes, an explicit session for streaming ones).
"""

import logging
import uuid
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.conversation import (
    Conversation,
    ConversationAnalytics,
    Message,
    MessageRole,
    ToolCall,
)
from app.services.agent import ToolCallRecord, message_text

logger = logging.getLogger(__name__)


class ConversationNotFoundError(Exception):
    """Raised when a conversation id does not exist."""

    def __init__(self, conversation_id: uuid.UUID | str):
        self.conversation_id = conversation_id
        self.status_code = 404
        super().__init__(f"Conversation not found: {conversation_id}")


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ConversationNotFoundError(value)


def _same_message(row: Message, item: dict[str, Any]) -> bool:
    role = item.get("role") or MessageRole.USER.value
    return row.role == role and row.external_id == item.get("id")


def serialize_conversation(conversation: Conversation) -> dict[str, Any]:
    return {
        "id": str(conversation.id),
        "title": conversation.title,
        "conversation_type": conversation.conversation_type,
        "context": conversation.context,
        "system_prompt": conversation.system_prompt,
        "parent_conversation_id": (
            str(conversation.parent_conversation_id) if conversation.parent_conversation_id else None
        ),
        "created_at": conversation.created_at.isoformat() if conversation.created_at else None,
        "updated_at": conversation.updated_at.isoformat() if conversation.updated_at else None,
    }


def to_core_messages(messages: Iterable[Message]) -> list[dict[str, Any]]:
    """Model-facing history: user text, assistant parts (or one text part)."""
    core: list[dict[str, Any]] = []
    for message in messages:
        if message.role == MessageRole.USER.value:
            core.append({"role": "user", "content": message.content})
        elif message.role == MessageRole.ASSISTANT.value:
            parts = message.content_parts or [{"type": "text", "text": message.content}]
            core.append({"role": "assistant", "content": parts})
    return core


def to_ui_messages(messages: Iterable[Message]) -> list[dict[str, Any]]:
    """Client-facing history keyed by the client's own message id when known."""
    ui = []
    for message in messages:
        item: dict[str, Any] = {
            "id": message.external_id or str(message.id),
            "role": message.role,
            "content": message.content,
        }
        if message.content_parts:
            item["parts"] = message.content_parts
        ui.append(item)
    return ui


class ConversationService:
    """CRUD over conversations, messages, tool calls and analytics."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_conversation(
        self,
        *,
        conversation_type: str,
        title: str | None = None,
        context: dict[str, Any] | None = None,
        system_prompt: str | None = None,
        parent_conversation_id: uuid.UUID | str | None = None,
    ) -> Conversation:
        conversation = Conversation(
            title=title,
            conversation_type=conversation_type,
            context=context or {},
            system_prompt=system_prompt,
            parent_conversation_id=_as_uuid(parent_conversation_id) if parent_conversation_id else None,
        )
        self.db.add(conversation)
        await self.db.flush()
        await self.db.refresh(conversation)
        logger.info(
            f"Created conversation {conversation.id}",
            extra={"conversation_type": conversation_type, "context": context or {}},
        )
        return conversation

    async def get_conversation(self, conversation_id: uuid.UUID | str) -> Conversation:
        result = await self.db.execute(
            select(Conversation).where(Conversation.id == _as_uuid(conversation_id))
        )
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def touch(self, conversation_id: uuid.UUID | str) -> None:
        """Bump ``updated_at`` so the conversation sorts as most recent."""
        await self.db.execute(
            update(Conversation)
            .where(Conversation.id == _as_uuid(conversation_id))
            .values(updated_at=func.now())
        )

    async def get_next_sequence(self, conversation_id: uuid.UUID | str) -> int:
        """Max existing sequence + 1, or 0 for an empty conversation."""
        result = await self.db.execute(
            select(func.max(Message.sequence)).where(
                Message.conversation_id == _as_uuid(conversation_id)
            )
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    async def _lock(self, conversation_id: uuid.UUID) -> None:
        # Row lock serialises sequence allocation per conversation
        result = await self.db.execute(
            select(Conversation.id).where(Conversation.id == conversation_id).with_for_update()
        )
        if result.scalar_one_or_none() is None:
            raise ConversationNotFoundError(conversation_id)

    async def append_message(
        self,
        conversation_id: uuid.UUID | str,
        *,
        role: str,
        content: str,
        content_parts: list[dict[str, Any]] | None = None,
        external_id: str | None = None,
    ) -> Message:
        conv_id = _as_uuid(conversation_id)
        await self._lock(conv_id)
        message = Message(
            conversation_id=conv_id,
            external_id=external_id,
            role=role,
            content=content,
            content_parts=content_parts,
            sequence=await self.get_next_sequence(conv_id),
        )
        self.db.add(message)
        await self.touch(conv_id)
        await self.db.flush()
        logger.debug(
            f"Saved {role} message",
            extra={"conversation_id": str(conv_id), "sequence": message.sequence},
        )
        return message

    async def save_messages(
        self,
        conversation_id: uuid.UUID | str,
        messages: Sequence[dict[str, Any]],
    ) -> list[Message]:
        """Make the stored history equal ``messages`` (client message dicts, in order).

        Rows whose sequence, role and client id still match are updated in
        place, so tool calls logged against them survive. Only rows that
        changed identity or fall beyond the new length are deleted.
        """
        conv_id = _as_uuid(conversation_id)
        await self._lock(conv_id)
        existing = {row.sequence: row for row in await self.list_messages(conv_id)}

        stale = [
            row.id
            for sequence, row in existing.items()
            if sequence >= len(messages) or not _same_message(row, messages[sequence])
        ]
        if stale:
            await self.db.execute(
                delete(Message)
                .where(Message.id.in_(stale))
                .execution_options(synchronize_session=False)
            )

        rows = []
        inserted = []
        for sequence, item in enumerate(messages):
            content = item.get("content")
            parts = item.get("parts")
            if parts is None and isinstance(content, list):
                parts = content
            row = existing.get(sequence)
            if row is None or row.id in stale:
                row = Message(
                    conversation_id=conv_id,
                    external_id=item.get("id"),
                    role=item.get("role") or MessageRole.USER.value,
                    sequence=sequence,
                )
                inserted.append(row)
            row.content = message_text(content)
            row.content_parts = parts or None
            rows.append(row)

        if inserted:
            self.db.add_all(inserted)
        await self.touch(conv_id)
        await self.db.flush()
        logger.info(
            f"Saved {len(rows)} messages to conversation {conv_id}",
            extra={"inserted": len(inserted), "deleted": len(stale)},
        )
        return rows

    async def list_messages(self, conversation_id: uuid.UUID | str) -> list[Message]:
        result = await self.db.execute(
            select(Message)
            .where(Message.conversation_id == _as_uuid(conversation_id))
            .order_by(Message.sequence.asc())
        )
        return list(result.scalars().all())

    async def find_latest_for_document(
        self,
        document_id: str,
        *,
        mode: str | None = None,
        schema_type: str | None = None,
        conversation_type: str | None = None,
    ) -> Conversation | None:
        """Most recently updated conversation whose context matches the document."""
        match: dict[str, Any] = {"documentId": document_id}
        if mode:
            match["mode"] = mode
        if schema_type:
            match["schemaType"] = schema_type

        query = select(Conversation).where(Conversation.context.contains(match))
        if conversation_type:
            query = query.where(Conversation.conversation_type == conversation_type)
        result = await self.db.execute(
            query.order_by(Conversation.updated_at.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def reset_document_conversations(self, document_id: str) -> int:
        """Delete every conversation bound to the document. Returns the count deleted."""
        result = await self.db.execute(
            delete(Conversation).where(Conversation.context.contains({"documentId": document_id}))
        )
        deleted = result.rowcount or 0
        logger.info(f"Reset {deleted} conversations for document {document_id}")
        return deleted

    async def log_tool_calls(
        self,
        message_id: uuid.UUID,
        records: Iterable[ToolCallRecord],
    ) -> int:
        rows = [
            ToolCall(
                message_id=message_id,
                tool_call_id=record.tool_call_id,
                tool_name=record.name,
                arguments=record.arguments or {},
                result=record.result,
                is_error=record.is_error,
            )
            for record in records
        ]
        if rows:
            self.db.add_all(rows)
            await self.db.flush()
        return len(rows)

    async def update_analytics(
        self,
        conversation_id: uuid.UUID | str,
        model_used: str | None,
        tool_calls: int = 0,
    ) -> None:
        """Upsert the analytics row: message count recomputed, tool calls accumulated."""
        conv_id = _as_uuid(conversation_id)
        count_result = await self.db.execute(
            select(func.count()).select_from(Message).where(Message.conversation_id == conv_id)
        )
        message_count = count_result.scalar_one()

        stmt = insert(ConversationAnalytics).values(
            id=uuid.uuid4(),
            conversation_id=conv_id,
            message_count=message_count,
            tool_call_count=tool_calls,
            model_used=model_used,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ConversationAnalytics.conversation_id],
            set_={
                "message_count": message_count,
                "tool_call_count": ConversationAnalytics.tool_call_count + tool_calls,
                "model_used": model_used,
                "updated_at": func.now(),
            },
        )
        await self.db.execute(stmt)
