"""API dependencies."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import require_admin

DbSession = Annotated[AsyncSession, Depends(get_db)]
AdminAccess = [Depends(require_admin)]
