"""Conversation history models."""

import enum
import uuid
from typing import Any

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import AppendOnlyModel, BaseModel


class MessageRole(str, enum.Enum):
    """Conversation message role."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class ConversationType(str, enum.Enum):
    """Which assistant a conversation belongs to."""

    CONTENT_COPILOT = "content-copilot"
    CONTENT_COPILOT_REFINEMENT = "content-copilot-refinement"


class Conversation(BaseModel):
    """A chat session, optionally bound to a CMS document via ``context``."""

    __tablename__ = "conversations"

    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    conversation_type: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    # {"source": "sanity", "documentId": ..., "schemaType": ..., "mode": ...}
    context: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
    )
    system_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_conversation_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="SET NULL"),
        nullable=True,
    )

    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.sequence",
    )
    analytics: Mapped["ConversationAnalytics | None"] = relationship(
        "ConversationAnalytics",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<Conversation {self.id} type={self.conversation_type}>"


class Message(AppendOnlyModel):
    """A single message; ``sequence`` orders messages within a conversation."""

    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("conversation_id", "sequence", name="uq_messages_conversation_sequence"),
    )

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Client-side message id (AI SDK style), echoed back to the studio
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Plain string; valid values enforced via MessageRole
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content_parts: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONB,
        nullable=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    conversation: Mapped["Conversation"] = relationship(
        "Conversation",
        back_populates="messages",
    )
    tool_calls: Mapped[list["ToolCall"]] = relationship(
        "ToolCall",
        back_populates="message",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Message {self.id} role={self.role} seq={self.sequence}>"


class ToolCall(AppendOnlyModel):
    """Audit row for one tool invocation made while producing a message."""

    __tablename__ = "tool_calls"

    message_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tool_call_id: Mapped[str] = mapped_column(String(255), nullable=False)
    tool_name: Mapped[str] = mapped_column(String(128), nullable=False)
    arguments: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    result: Mapped[Any | None] = mapped_column(JSONB, nullable=True)
    is_error: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    message: Mapped["Message"] = relationship(
        "Message",
        back_populates="tool_calls",
    )

    def __repr__(self) -> str:
        return f"<ToolCall {self.tool_name} error={self.is_error}>"


class ConversationAnalytics(BaseModel):
    """Per-conversation counters, upserted after each assistant turn."""

    __tablename__ = "conversation_analytics"

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tool_call_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    model_used: Mapped[str | None] = mapped_column(String(255), nullable=True)

    conversation: Mapped["Conversation"] = relationship(
        "Conversation",
        back_populates="analytics",
    )
