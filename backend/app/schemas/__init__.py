"""Pydantic schemas for request/response validation."""

from app.schemas.chat import (
    ChatRequest,
    CopilotRequest,
    DocumentSnapshot,
    EntityChatRequest,
    GetCopilotConversationRequest,
    LegacyCopilotRequest,
    ResetConversationsRequest,
    ResetConversationsResponse,
)
from app.schemas.cms import (
    SerializableField,
    SerializableSchema,
    ToolArgs,
)
from app.schemas.common import (
    BaseSchema,
    ErrorResponse,
    SuccessResponse,
)

__all__ = [
    # Common
    "BaseSchema",
    "ErrorResponse",
    "SuccessResponse",
    # Chat
    "ChatRequest",
    "EntityChatRequest",
    "DocumentSnapshot",
    "LegacyCopilotRequest",
    "CopilotRequest",
    "GetCopilotConversationRequest",
    "ResetConversationsRequest",
    "ResetConversationsResponse",
    # CMS
    "ToolArgs",
    "SerializableField",
    "SerializableSchema",
]
