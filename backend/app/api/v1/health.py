"""Health check endpoints."""

from fastapi import APIRouter
from sqlalchemy import text

from app.api.deps import DbSession

router = APIRouter()


@router.get("")
async def health_check() -> dict[str, str]:
    """Basic health check."""
    return {"status": "ok"}


@router.get("/ready")
async def readiness_check(db: DbSession) -> dict[str, str]:
    """Readiness check (database reachable)."""
    await db.execute(text("SELECT 1"))
    return {"status": "ready"}
