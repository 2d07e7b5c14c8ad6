"""Shared response helpers for the assistant routes."""

from collections.abc import AsyncIterator

from fastapi.responses import JSONResponse, StreamingResponse

from app.schemas.common import ErrorResponse

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

GENERIC_ERROR = "An error occurred while processing your request"


def event_stream(events: AsyncIterator[str], conversation_id: str | None = None) -> StreamingResponse:
    headers = dict(SSE_HEADERS)
    if conversation_id:
        headers["X-Conversation-Id"] = conversation_id
    return StreamingResponse(events, media_type="text/event-stream", headers=headers)


def error_response(message: str = GENERIC_ERROR, status_code: int = 500) -> JSONResponse:
    return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=status_code)
