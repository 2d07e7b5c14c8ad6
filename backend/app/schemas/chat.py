"""Request and response bodies for the assistant and conversation routes.

Chat messages are kept as plain dicts: the client sends its own message
shape (``id``, ``role``, ``content`` and optionally ``parts``) and the
same shape is stored and echoed back.
"""

from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from app.schemas.cms import SerializableSchema
from app.schemas.common import BaseSchema

ConversationMode = Literal["regular", "refinement"]


class ChatRequest(BaseSchema):
    """Dave and Dave Admin request."""

    messages: list[dict[str, Any]] = Field(default_factory=list)


class EntityChatRequest(ChatRequest):
    """Per-entity Dave Admin request."""

    entity_id: str | None = None
    is_edit_mode: bool = False


class DocumentSnapshot(BaseSchema):
    """Document versions as the studio sees them."""

    published: dict[str, Any] | None = None
    draft: dict[str, Any] | None = None
    displayed: dict[str, Any] = Field(default_factory=dict)
    historical: dict[str, Any] | None = None


class LegacyCopilotBody(BaseSchema):
    document: DocumentSnapshot = Field(default_factory=DocumentSnapshot)
    document_id: str
    schema_type: str
    conversation_id: UUID | None = None


class LegacyCopilotRequest(BaseSchema):
    """Single-document copilot request (document context nested under ``body``)."""

    messages: list[dict[str, Any]] = Field(default_factory=list)
    body: LegacyCopilotBody


class CopilotRequest(BaseSchema):
    """Regular and refinement copilot request."""

    id: str | None = None
    messages: list[dict[str, Any]] = Field(default_factory=list)
    document_id: str
    conversation_id: UUID | None = None
    parent_conversation_id: UUID | None = None
    schema_type: str
    serializable_schema: SerializableSchema | None = None
    document_data: dict[str, Any] = Field(default_factory=dict)


class GetCopilotConversationRequest(BaseSchema):
    document_id: str = ""
    schema_type: str | None = None


class ResetConversationsRequest(BaseSchema):
    document_id: str = ""


class ResetConversationsResponse(BaseSchema):
    success: bool = True
    message: str
    deleted_count: int


class ConversationQuery(BaseSchema):
    document_id: str = ""
    mode: ConversationMode = "regular"


class SaveMessageRequest(BaseSchema):
    conversation_id: UUID | None = None
    message: dict[str, Any] | None = None


class SaveMessagesRequest(BaseSchema):
    conversation_id: UUID | None = None
    messages: list[dict[str, Any]] | None = None
