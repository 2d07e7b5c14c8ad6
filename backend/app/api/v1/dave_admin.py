"""Content management assistants (general and per-entity)."""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status

from app.api.streaming import error_response, event_stream
from app.core.config import settings
from app.schemas.chat import ChatRequest, EntityChatRequest
from app.services.agent import run_agent, to_llm_messages
from app.services.prompts import ADMIN_SYSTEM_PROMPT, ENTITY_TYPES, entity_system_prompt
from app.services.sanity import get_sanity_client
from app.services.tools import build_admin_tools

logger = logging.getLogger(__name__)
router = APIRouter()

# Route entity name -> Sanity document type
ENTITY_DOCUMENT_TYPES = {
    "project": "project",
    "knowledge": "knowledgeBase",
    "skill": "skill",
}


async def load_entity(entity_type: str, entity_id: str) -> dict[str, Any] | None:
    """Current document for edit mode; ``None`` when it cannot be fetched."""
    document_type = ENTITY_DOCUMENT_TYPES[entity_type]
    try:
        return await get_sanity_client().fetch(
            f'*[_type == "{document_type}" && _id == $id][0]',
            {"id": entity_id},
        )
    except Exception as e:
        logger.error(f"Error fetching {entity_type} {entity_id}: {e}")
        return None


@router.post("")
async def chat_with_admin(payload: ChatRequest):
    """Create projects, knowledge items and skills from a conversation."""
    last_content = payload.messages[-1].get("content") if payload.messages else None
    if isinstance(last_content, str):
        logger.info(f"Admin message: {last_content[:200]!r}")

    try:
        events = run_agent(
            system_prompt=ADMIN_SYSTEM_PROMPT,
            messages=to_llm_messages(payload.messages),
            registry=build_admin_tools(),
            model=settings.default_admin_model,
            max_steps=5,
            temperature=0.7,
            max_tokens=1500,
        )
        return event_stream(events)
    except Exception as e:
        logger.error(f"Error in Dave Admin route: {e}", exc_info=True)
        return error_response()


@router.post("/{entity_type}")
async def chat_with_entity_admin(entity_type: str, payload: EntityChatRequest):
    """Assistant scoped to one entity type, optionally editing an existing document."""
    if entity_type not in ENTITY_TYPES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown entity type: {entity_type}",
        )

    try:
        entity_data = None
        edit_entity_id = None
        if payload.is_edit_mode and payload.entity_id:
            edit_entity_id = payload.entity_id
            entity_data = await load_entity(entity_type, payload.entity_id)

        logger.info(
            f"Starting {entity_type} assistant",
            extra={"edit_mode": bool(edit_entity_id), "entity_id": edit_entity_id},
        )
        events = run_agent(
            system_prompt=entity_system_prompt(entity_type, entity_data),
            messages=to_llm_messages(payload.messages),
            registry=build_admin_tools(edit_entity_id=edit_entity_id, include_check_content=False),
            model=settings.default_admin_model,
            max_steps=5,
            temperature=0.7,
            max_tokens=1500,
        )
        return event_stream(events)
    except Exception as e:
        logger.error(f"Error in {entity_type} assistant route: {e}", exc_info=True)
        return error_response()
