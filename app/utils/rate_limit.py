# app/utils/rate_limit.py
"""
Per-user request throttling.

Counters live in a RateLimitStore that the application owns
(``app.state.rate_limit_store``). The in-memory store only counts requests seen
by the current process; deployments running several workers should install a
store backed by a shared cache.
"""

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Protocol

from fastapi import Depends, HTTPException, Request, status

from app.models.user import User
from app.utils.auth import get_current_user


@dataclass
class RateLimitState:
    count: int
    reset_at: datetime


class RateLimitStore(Protocol):
    def hit(self, key: str, window_seconds: int, now: datetime) -> RateLimitState:
        """Count one request against key and return the window's state"""
        ...

    def reset(self) -> None:
        ...


class InMemoryRateLimitStore:
    def __init__(self):
        self._windows: Dict[str, RateLimitState] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, window_seconds: int, now: datetime) -> RateLimitState:
        with self._lock:
            for expired in [k for k, s in self._windows.items() if now >= s.reset_at]:
                del self._windows[expired]
            state = self._windows.get(key)
            if state is None or now >= state.reset_at:
                state = RateLimitState(count=0, reset_at=now + timedelta(seconds=window_seconds))
                self._windows[key] = state
            state.count += 1
            return RateLimitState(count=state.count, reset_at=state.reset_at)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


def rate_limit_key(user_id: Optional[int], path: str) -> str:
    return f"{user_id if user_id is not None else 'anonymous'}:{path}"


def rate_limit(max_requests: int, window_seconds: int):
    """Dependency factory allowing max_requests per user and route per window"""
    def limiter(request: Request, current_user: User = Depends(get_current_user)) -> User:
        store: RateLimitStore = request.app.state.rate_limit_store
        now = datetime.utcnow()
        # Matched route template, so /users/1 and /users/2 share a counter
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        state = store.hit(rate_limit_key(current_user.id, path), window_seconds, now)
        if state.count > max_requests:
            retry_after = max(1, math.ceil((state.reset_at - now).total_seconds()))
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests, please try again later.",
                headers={"Retry-After": str(retry_after)},
            )
        return current_user
    return limiter
