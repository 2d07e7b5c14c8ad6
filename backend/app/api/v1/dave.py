"""Public portfolio assistant."""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.api.streaming import error_response, event_stream
from app.core.config import settings
from app.core.rate_limit import enforce_rate_limit
from app.schemas.chat import ChatRequest
from app.services.agent import run_agent, to_llm_messages
from app.services.prompts import dave_system_prompt, help_text
from app.services.tools import build_portfolio_tools

logger = logging.getLogger(__name__)
router = APIRouter()


def _is_help_command(content: object) -> bool:
    return isinstance(content, str) and content.strip().lower() == "help"


@router.post("")
async def chat_with_dave(payload: ChatRequest, request: Request):
    """Answer visitor questions about the portfolio.

    ``help`` short-circuits with a canned JSON answer; everything else
    streams SSE events from the tool loop.
    """
    enforce_rate_limit(
        request,
        limit_per_minute=settings.rate_limit_chat_per_minute,
        scope="dave:chat",
    )

    last_content = payload.messages[-1].get("content") if payload.messages else None
    if isinstance(last_content, str):
        logger.info(f"Dave message: {last_content[:200]!r}")

    if _is_help_command(last_content):
        return JSONResponse(
            {
                "id": str(int(time.time() * 1000)),
                "role": "assistant",
                "content": help_text(),
            }
        )

    try:
        events = run_agent(
            system_prompt=dave_system_prompt(),
            messages=to_llm_messages(payload.messages),
            registry=build_portfolio_tools(),
            model=settings.default_chat_model,
            max_steps=3,
            temperature=0.7,
            max_tokens=1000,
        )
        return event_stream(events)
    except Exception as e:
        logger.error(f"Error in Dave route: {e}", exc_info=True)
        return error_response()
