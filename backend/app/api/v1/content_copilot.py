"""Content copilot: AI editing of Sanity documents from the studio.

Three chat flavours share the conversation store:

- ``POST ""``: single-document copilot with field-level tools
- ``POST /regular``: full document editing; the client owns the history
  and the whole exchange is re-saved after each reply
- ``POST /refinement``: focused follow-up conversations that append
  message by message and may point at a parent conversation
"""

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from app.api.deps import DbSession
from app.api.streaming import error_response, event_stream
from app.core.config import settings
from app.core.database import async_session_maker
from app.models.conversation import ConversationType, MessageRole
from app.schemas.chat import (
    CopilotRequest,
    GetCopilotConversationRequest,
    LegacyCopilotRequest,
    ResetConversationsRequest,
    ResetConversationsResponse,
)
from app.services.agent import AgentResult, message_text, run_agent, to_llm_messages
from app.services.conversations import (
    ConversationNotFoundError,
    ConversationService,
    serialize_conversation,
    to_ui_messages,
)
from app.services.prompts import (
    legacy_copilot_prompt,
    refinement_copilot_prompt,
    regular_copilot_prompt,
)
from app.services.tools import (
    build_document_tools,
    build_github_tools,
    build_legacy_document_tools,
)

logger = logging.getLogger(__name__)
router = APIRouter()

COPILOT_MAX_STEPS = 20
COPILOT_MAX_TOKENS = 4000


def _last_user_message(messages: Sequence[dict[str, Any]]) -> dict[str, Any] | None:
    if messages and messages[-1].get("role") == MessageRole.USER.value:
        return messages[-1]
    return None


def persist_reply(
    conversation_id: UUID,
    *,
    history: Sequence[dict[str, Any]] | None = None,
) -> Callable[[AgentResult], Awaitable[str | None]]:
    """Build the ``on_finish`` callback that stores the assistant reply.

    With ``history`` the stored conversation is replaced by history + reply,
    otherwise the reply is appended. The request session is closed by the
    time the stream ends, so a fresh one is opened here.
    """

    async def on_finish(result: AgentResult) -> str | None:
        try:
            async with async_session_maker() as session:
                service = ConversationService(session)
                if history is not None:
                    reply = {
                        "id": f"msg_{int(time.time() * 1000)}",
                        "role": MessageRole.ASSISTANT.value,
                        "content": result.content,
                        "parts": result.parts,
                    }
                    saved = await service.save_messages(conversation_id, [*history, reply])
                    message = saved[-1]
                else:
                    message = await service.append_message(
                        conversation_id,
                        role=MessageRole.ASSISTANT.value,
                        content=result.content,
                        content_parts=result.parts or None,
                    )
                await service.log_tool_calls(message.id, result.tool_calls)
                await service.update_analytics(
                    conversation_id,
                    model_used=result.model,
                    tool_calls=len(result.tool_calls),
                )
                await session.commit()
                return str(message.id)
        except Exception as e:
            logger.error(f"Failed to save assistant reply for {conversation_id}: {e}", exc_info=True)
            return None

    return on_finish


async def _resolve_conversation(
    service: ConversationService,
    conversation_id: UUID | None,
    **create_kwargs: Any,
) -> UUID:
    """Touch an existing conversation or create a new one."""
    if conversation_id:
        await service.get_conversation(conversation_id)
        await service.touch(conversation_id)
        return conversation_id
    conversation = await service.create_conversation(**create_kwargs)
    return conversation.id


@router.post("")
async def legacy_copilot(payload: LegacyCopilotRequest, db: DbSession):
    """Copilot for the document open in the studio."""
    body = payload.body
    displayed = body.document.displayed
    system_prompt = legacy_copilot_prompt(body.document_id, body.schema_type, displayed)
    service = ConversationService(db)

    try:
        conversation_id = await _resolve_conversation(
            service,
            body.conversation_id,
            conversation_type=ConversationType.CONTENT_COPILOT.value,
            title=f"{body.schema_type} - {displayed.get('title') or body.document_id}",
            context={
                "source": "sanity",
                "documentId": body.document_id,
                "schemaType": body.schema_type,
            },
            system_prompt=system_prompt,
        )
        user_message = _last_user_message(payload.messages)
        if user_message:
            await service.append_message(
                conversation_id,
                role=MessageRole.USER.value,
                content=message_text(user_message.get("content")),
                external_id=user_message.get("id"),
            )
        await db.commit()
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    try:
        events = run_agent(
            system_prompt=system_prompt,
            messages=to_llm_messages(payload.messages),
            registry=build_legacy_document_tools(body.document_id),
            model=settings.default_admin_model,
            max_steps=5,
            temperature=0.7,
            max_tokens=COPILOT_MAX_TOKENS,
            on_finish=persist_reply(conversation_id),
        )
        return event_stream(events, str(conversation_id))
    except Exception as e:
        logger.error(f"Error in content copilot route: {e}", exc_info=True)
        return error_response()


@router.post("/regular")
async def regular_copilot(payload: CopilotRequest, db: DbSession):
    """Full document editing with path-based tools."""
    system_prompt = regular_copilot_prompt(
        document_id=payload.document_id,
        schema_type=payload.schema_type,
        document_data=payload.document_data,
        schema=payload.serializable_schema,
    )
    service = ConversationService(db)

    try:
        conversation_id = await _resolve_conversation(
            service,
            payload.conversation_id,
            conversation_type=ConversationType.CONTENT_COPILOT.value,
            title=(
                payload.document_data.get("title")
                or f"New {payload.schema_type} - {payload.document_id[:8]}"
            ),
            context={
                "source": "sanity",
                "documentId": payload.document_id,
                "schemaType": payload.schema_type,
                "documentTitle": payload.document_data.get("title"),
                "mode": "regular",
            },
            system_prompt=system_prompt,
        )
        await db.commit()
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    logger.info(
        f"Regular copilot request for {payload.schema_type} {payload.document_id}",
        extra={"conversation_id": str(conversation_id), "messages": len(payload.messages)},
    )
    try:
        events = run_agent(
            system_prompt=system_prompt,
            messages=to_llm_messages(payload.messages),
            registry=build_document_tools().merge(build_github_tools()),
            model=settings.default_admin_model,
            max_steps=COPILOT_MAX_STEPS,
            temperature=0.7,
            max_tokens=COPILOT_MAX_TOKENS,
            on_finish=persist_reply(conversation_id, history=payload.messages),
        )
        return event_stream(events, str(conversation_id))
    except Exception as e:
        logger.error(f"Error in regular copilot route: {e}", exc_info=True)
        return error_response()


@router.post("/refinement")
async def refinement_copilot(payload: CopilotRequest, db: DbSession):
    """Focused refinement conversation, optionally branched from a parent."""
    system_prompt = refinement_copilot_prompt(
        document_id=payload.document_id,
        schema_type=payload.schema_type,
        document_data=payload.document_data,
        schema=payload.serializable_schema,
    )
    service = ConversationService(db)

    try:
        conversation_id = await _resolve_conversation(
            service,
            payload.conversation_id,
            conversation_type=ConversationType.CONTENT_COPILOT_REFINEMENT.value,
            title=f"{payload.document_data.get('title') or 'Document'} - Refinement",
            context={
                "source": "sanity",
                "documentId": payload.document_id,
                "schemaType": payload.schema_type,
                "documentTitle": payload.document_data.get("title"),
                "mode": "refinement",
            },
            system_prompt=system_prompt,
            parent_conversation_id=payload.parent_conversation_id,
        )
        user_message = _last_user_message(payload.messages)
        if user_message:
            await service.append_message(
                conversation_id,
                role=MessageRole.USER.value,
                content=message_text(user_message.get("content")),
                content_parts=user_message.get("parts"),
                external_id=user_message.get("id") or f"msg_{int(time.time() * 1000)}",
            )
        await db.commit()
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    try:
        events = run_agent(
            system_prompt=system_prompt,
            messages=to_llm_messages(payload.messages),
            registry=build_document_tools().merge(build_github_tools()),
            model=settings.default_admin_model,
            max_steps=COPILOT_MAX_STEPS,
            temperature=0.7,
            max_tokens=COPILOT_MAX_TOKENS,
            on_finish=persist_reply(conversation_id),
        )
        return event_stream(events, str(conversation_id))
    except Exception as e:
        logger.error(f"Error in refinement copilot route: {e}", exc_info=True)
        return error_response()


@router.post("/get-conversation")
async def get_copilot_conversation(payload: GetCopilotConversationRequest, db: DbSession) -> dict:
    """Latest single-document copilot conversation with its messages."""
    if not payload.document_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Document ID is required")

    service = ConversationService(db)
    conversation = await service.find_latest_for_document(
        payload.document_id,
        schema_type=payload.schema_type,
        conversation_type=ConversationType.CONTENT_COPILOT.value,
    )
    if conversation is None:
        return {"conversation": None, "messages": []}

    messages = await service.list_messages(conversation.id)
    return {
        "conversation": serialize_conversation(conversation),
        "messages": to_ui_messages(messages),
    }


@router.post("/reset-conversations", response_model=ResetConversationsResponse)
async def reset_conversations(payload: ResetConversationsRequest, db: DbSession):
    """Delete every conversation attached to a document."""
    if not payload.document_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Document ID is required")

    deleted = await ConversationService(db).reset_document_conversations(payload.document_id)
    return ResetConversationsResponse(
        success=True,
        message=f"Reset conversations for document: {payload.document_id}",
        deleted_count=deleted,
    )
