"""Redis backend for the reference cache store.

Lets several API workers share one reference cache. Keys are the same
namespaced strings the SQL backend uses; no Redis TTL is set because expiry
is decided at read time from the stored timestamp.
"""

from __future__ import annotations

import os
import re
from typing import Any, List, Optional

import redis

_GLOB_SPECIALS = re.compile(r"([*?\[\]\\])")


def _escape_glob(value: str) -> str:
    return _GLOB_SPECIALS.sub(r"\\\1", value)


class RedisKeyValueStore:
    """Key/value backend over a Redis connection."""

    def __init__(self, url: Optional[str] = None, *, client: Any = None) -> None:
        self.url = url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self._client = client or redis.from_url(
            self.url,
            decode_responses=True,
            socket_keepalive=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )

    def get(self, key: str) -> Optional[str]:
        return self._client.get(key)

    def set(self, key: str, value: str) -> None:
        self._client.set(key, value)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def keys(self, prefix: str) -> List[str]:
        return sorted(self._client.scan_iter(match=f"{_escape_glob(prefix)}*"))

    def ping(self) -> bool:
        """Check Redis connectivity."""
        try:
            return bool(self._client.ping())
        except redis.exceptions.ConnectionError:
            return False
