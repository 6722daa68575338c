from __future__ import annotations

import os
import secrets
import threading
import time
from typing import Dict, Optional, Tuple

from fastapi import Header, HTTPException, Request

from fbrinvoicing.api.tenants import get_registry

ENGINE_VERSION = os.getenv("FBR_ENGINE_VERSION", "0.1.0")


def _parse_keys(raw: str | None) -> set[str]:
    if not raw:
        return set()
    return {key.strip() for key in raw.split(",") if key.strip()}


def admin_api_keys() -> set[str]:
    """Return the configured admin keys; empty means the admin API is closed."""

    return _parse_keys(os.getenv("FBR_ADMIN_KEYS"))


class RateLimiter:
    """Lightweight in-process rate limiter keyed by (api_key, route)."""

    def __init__(self, rate_per_minute: int = 60, window_seconds: int | None = None) -> None:
        self.rate_per_minute = max(1, rate_per_minute)
        self.window_seconds = max(1, window_seconds or int(os.getenv("FBR_RATE_WINDOW_SEC", "60")))
        self._lock = threading.Lock()
        self._counters: Dict[Tuple[str, str], Tuple[int, int]] = {}

    def _current_window(self) -> int:
        return int(time.time() // self.window_seconds)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()

    def check(self, api_key: str, route: str) -> None:
        window = self._current_window()
        key = (api_key, route)
        with self._lock:
            count, active_window = self._counters.get(key, (0, window))
            if active_window != window:
                count = 0
                active_window = window

            if count >= self.rate_per_minute:
                raise HTTPException(
                    status_code=429,
                    detail={
                        "message": "Rate limit exceeded",
                        "limit_per_minute": self.rate_per_minute,
                        "route": route,
                    },
                )

            self._counters[key] = (count + 1, active_window)


rate_limiter = RateLimiter(
    rate_per_minute=int(os.getenv("FBR_RATE_LIMIT_PER_MINUTE", "120"))
)


def require_api_key(
    request: Request, x_api_key: Optional[str] = Header(None)
) -> str:
    """Validate the tenant API key and enforce per-route rate limits."""

    if not x_api_key:
        raise HTTPException(status_code=401, detail={"message": "Missing API key"})
    if get_registry().resolve(x_api_key) is None:
        raise HTTPException(status_code=401, detail={"message": "Invalid API key"})

    rate_limiter.check(x_api_key, request.url.path)
    return x_api_key


def require_admin_key(x_admin_key: Optional[str] = Header(None)) -> str:
    """Guard for tenant management routes."""

    if not x_admin_key:
        raise HTTPException(status_code=401, detail={"message": "Missing admin key"})
    if not any(secrets.compare_digest(x_admin_key, key) for key in admin_api_keys()):
        raise HTTPException(status_code=403, detail={"message": "Invalid admin key"})
    return x_admin_key


def set_rate_limit(limit: int) -> None:
    """Utility hook for tests to reconfigure the limiter."""

    global rate_limiter
    rate_limiter = RateLimiter(
        rate_per_minute=max(1, int(limit)),
        window_seconds=int(os.getenv("FBR_RATE_WINDOW_SEC", "60")),
    )
