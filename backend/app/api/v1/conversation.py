"""Conversation history for the regular and refinement copilot modes."""

import logging

from fastapi import APIRouter, HTTPException, status

from app.api.deps import DbSession
from app.models.conversation import MessageRole
from app.schemas.chat import ConversationQuery, SaveMessageRequest, SaveMessagesRequest
from app.schemas.common import SuccessResponse
from app.services.agent import message_text
from app.services.conversations import (
    ConversationNotFoundError,
    ConversationService,
    serialize_conversation,
    to_core_messages,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/get")
async def get_conversation(payload: ConversationQuery, db: DbSession) -> dict:
    """Latest conversation for a document in the given mode."""
    if not payload.document_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing documentId")

    service = ConversationService(db)
    conversation = await service.find_latest_for_document(payload.document_id, mode=payload.mode)
    if conversation is None:
        return {"conversation": None, "messages": []}

    messages = await service.list_messages(conversation.id)
    return {
        "conversation": serialize_conversation(conversation),
        "messages": to_core_messages(messages),
        "mode": payload.mode,
    }


@router.post("/save-message", response_model=SuccessResponse, response_model_exclude_none=True)
async def save_message(payload: SaveMessageRequest, db: DbSession):
    """Append one message to a conversation."""
    if not payload.conversation_id or not payload.message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")

    message = payload.message
    content = message.get("content")
    try:
        await ConversationService(db).append_message(
            payload.conversation_id,
            role=message.get("role") or MessageRole.USER.value,
            content=content if isinstance(content, str) else message_text(content),
            content_parts=message.get("parts"),
            external_id=message.get("id"),
        )
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return SuccessResponse()


@router.post("/save-messages", response_model=SuccessResponse, response_model_exclude_none=True)
async def save_messages(payload: SaveMessagesRequest, db: DbSession):
    """Replace a conversation's stored history."""
    if not payload.conversation_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or missing conversationId",
        )
    if payload.messages is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or missing messages array",
        )

    try:
        await ConversationService(db).save_messages(payload.conversation_id, payload.messages)
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return SuccessResponse()
