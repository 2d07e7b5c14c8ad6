"""Admin access checks for routes that write to the CMS."""

import hmac
import logging

from fastapi import HTTPException, Request, status

from app.core.config import settings

logger = logging.getLogger(__name__)

ADMIN_KEY_HEADER = "X-Admin-Key"


def verify_admin_key(provided: str | None, expected: str) -> bool:
    """Constant-time comparison of the provided admin key."""
    if not expected:
        # Not configured: only allowed outside production (enforced by Settings)
        return True
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_admin(request: Request) -> None:
    """FastAPI dependency guarding admin, copilot and conversation routes.

    Raises:
        HTTPException(401) when the key is missing or wrong.
    """
    provided = request.headers.get(ADMIN_KEY_HEADER)
    if not verify_admin_key(provided, settings.admin_api_key):
        logger.warning(
            "Rejected admin request",
            extra={"path": request.url.path, "has_key": bool(provided)},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin key",
        )
