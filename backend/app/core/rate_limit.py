"""Per-client rate limiting for the public Dave route.

Visitors are anonymous, so clients are keyed by IP (the first
``X-Forwarded-For`` hop when behind the hosting proxy). Counters live in
process memory; each API instance enforces its own limit.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from fastapi import HTTPException, Request, status

from app.core.config import settings

WINDOW_SECONDS = 60


def _now() -> float:
    return time.time()


@dataclass
class FixedWindowLimiter:
    """Allows ``limit`` hits per client in each ``window`` seconds."""

    limit: int
    window: int = WINDOW_SECONDS
    windows: dict[str, tuple[float, int]] = field(default_factory=dict)

    def hit(self, client: str, now: float) -> int | None:
        """Record a hit. Returns seconds until retry when over the limit."""
        started, count = self.windows.get(client, (now, 0))
        if now - started >= self.window:
            started, count = now, 0
        if count >= self.limit:
            return max(1, int(self.window - (now - started)))
        self.windows[client] = (started, count + 1)
        return None


# scope -> limiter
_limiters: dict[str, FixedWindowLimiter] = {}


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


def reset_rate_limits() -> None:
    _limiters.clear()


def enforce_rate_limit(request: Request, *, limit_per_minute: int, scope: str) -> None:
    """Count the request against ``scope`` for its client.

    Raises:
        HTTPException(429) with ``Retry-After`` when over the limit.
    """
    if not settings.rate_limit_enabled:
        return

    limiter = _limiters.get(scope)
    if limiter is None or limiter.limit != limit_per_minute:
        limiter = _limiters[scope] = FixedWindowLimiter(limit=limit_per_minute)

    retry_after = limiter.hit(client_key(request), _now())
    if retry_after is not None:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(retry_after)},
        )
