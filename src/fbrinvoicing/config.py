"""Runtime configuration read from the process environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_BASE_URL = "https://gw.fbr.gov.pk"
ENVIRONMENTS = ("sandbox", "production")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Service settings; build with :meth:`from_env` at startup."""

    base_url: str = DEFAULT_BASE_URL
    http_timeout: float = 30.0
    cache_prefix: str = "fbr"
    cache_backend: str = "sql"
    cache_db_url: Optional[str] = None
    redis_url: str = "redis://localhost:6379/0"
    uom_max_attempts: int = 3
    uom_retry_delay: float = 1.0
    data_root: Path = Path(".")

    @property
    def resolved_cache_db_url(self) -> str:
        if self.cache_db_url:
            return self.cache_db_url
        return f"sqlite:///{self.data_root / 'data' / 'refdata_cache.db'}"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            base_url=os.getenv("FBR_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            http_timeout=_env_float("FBR_HTTP_TIMEOUT", 30.0),
            cache_prefix=os.getenv("FBR_CACHE_PREFIX", "fbr"),
            cache_backend=os.getenv("FBR_CACHE_BACKEND", "sql").lower(),
            cache_db_url=os.getenv("FBR_CACHE_DB_URL") or None,
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            uom_max_attempts=max(1, _env_int("FBR_UOM_MAX_ATTEMPTS", 3)),
            uom_retry_delay=max(0.0, _env_float("FBR_UOM_RETRY_DELAY", 1.0)),
            data_root=Path(os.getenv("FBR_DATA_ROOT", ".")),
        )
