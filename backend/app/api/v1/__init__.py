"""API v1 module."""

from fastapi import APIRouter

from app.api.deps import AdminAccess
from app.api.v1 import content_copilot, conversation, dave, dave_admin, health

router = APIRouter()

router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(dave.router, prefix="/dave", tags=["dave"])
router.include_router(
    dave_admin.router, prefix="/dave-admin", tags=["dave-admin"], dependencies=AdminAccess
)
router.include_router(
    content_copilot.router,
    prefix="/content-copilot",
    tags=["content-copilot"],
    dependencies=AdminAccess,
)
router.include_router(
    conversation.router, prefix="/conversation", tags=["conversation"], dependencies=AdminAccess
)
