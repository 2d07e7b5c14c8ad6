"""SQLAlchemy models."""

from app.models.conversation import (
    Conversation,
    ConversationAnalytics,
    ConversationType,
    Message,
    MessageRole,
    ToolCall,
)

__all__ = [
    "Conversation",
    "ConversationAnalytics",
    "ConversationType",
    "Message",
    "MessageRole",
    "ToolCall",
]
