"""Persistent storage for reference cache records.

Records live in a flat string key/value store under namespaced keys::

    <prefix>:<kind>_cache               JSON payload
    <prefix>:<kind>_cache_timestamp     fetch time, ms since epoch
    <prefix>:<kind>:<key>_cache         per-key kinds embed the lookup key

Neither prefixes nor kind slugs contain ":", so one prefix's keys never
match another prefix's scan. Payload and timestamp are written in the same
call but not atomically; a half-written record is treated as absent on read.

Backends are synchronous; :class:`CacheStore` runs their calls in a worker
thread so a slow database or Redis round-trip never blocks the event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, delete, insert, select
from sqlalchemy.engine import Engine

from fbrinvoicing.errors import CorruptPersistedRecord
from fbrinvoicing.refdata.entries import CACHE_TTL_MS, ReferenceEntry, ReferenceKind

logger = logging.getLogger(__name__)

_SEPARATOR = ":"
_RECORD_SUFFIX = "_cache"
_TIMESTAMP_SUFFIX = "_cache_timestamp"


@dataclass(frozen=True)
class CacheRecord:
    """A cached payload together with the time it was fetched."""

    entries: List[ReferenceEntry]
    fetched_at: int

    def is_valid(self, now_ms: int, ttl_ms: int = CACHE_TTL_MS) -> bool:
        return now_ms - self.fetched_at < ttl_ms


class KeyValueStore(Protocol):
    """Minimal string key/value backend used by :class:`CacheStore`."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str) -> List[str]: ...


class MemoryKeyValueStore:
    """Process-local backend, used in tests and for ``FBR_CACHE_BACKEND=memory``."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str) -> List[str]:
        with self._lock:
            stored = list(self._data)
        return sorted(key for key in stored if key.startswith(prefix))


_metadata = MetaData()

reference_cache_table = Table(
    "reference_cache",
    _metadata,
    Column("storage_key", String(255), primary_key=True),
    Column("value", Text, nullable=False),
)


def _ensure_sqlite_parent(url: str) -> None:
    if not url.startswith("sqlite:///"):
        return
    raw_path = url[len("sqlite:///"):]
    if not raw_path or raw_path == ":memory:":
        return
    Path(raw_path).parent.mkdir(parents=True, exist_ok=True)


class SqlKeyValueStore:
    """SQLAlchemy-backed key/value table (SQLite by default)."""

    def __init__(self, url: Optional[str] = None, *, engine: Optional[Engine] = None) -> None:
        if engine is None:
            if not url:
                raise ValueError("SqlKeyValueStore needs a database URL or an engine")
            _ensure_sqlite_parent(url)
            # Calls arrive from worker threads.
            connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
            engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        self.engine = engine
        _metadata.create_all(self.engine)

    def get(self, key: str) -> Optional[str]:
        stmt = select(reference_cache_table.c.value).where(reference_cache_table.c.storage_key == key)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(reference_cache_table).where(reference_cache_table.c.storage_key == key))
            conn.execute(insert(reference_cache_table).values(storage_key=key, value=value))

    def delete(self, key: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(reference_cache_table).where(reference_cache_table.c.storage_key == key))

    def keys(self, prefix: str) -> List[str]:
        stmt = (
            select(reference_cache_table.c.storage_key)
            .where(reference_cache_table.c.storage_key.startswith(prefix, autoescape=True))
            .order_by(reference_cache_table.c.storage_key)
        )
        with self.engine.connect() as conn:
            return [row[0] for row in conn.execute(stmt)]


def _encode_entries(entries: Sequence[ReferenceEntry]) -> str:
    return json.dumps([entry.to_dict() for entry in entries], separators=(",", ":"))


def _decode_record(payload: str, timestamp: str) -> CacheRecord:
    try:
        raw = json.loads(payload)
        fetched_at = int(timestamp)
    except (TypeError, ValueError) as exc:
        raise CorruptPersistedRecord(str(exc)) from exc
    if not isinstance(raw, list):
        raise CorruptPersistedRecord("payload is not a list")
    try:
        entries = [ReferenceEntry.from_dict(item) for item in raw]
    except (AttributeError, KeyError, TypeError) as exc:
        raise CorruptPersistedRecord(f"bad entry: {exc}") from exc
    return CacheRecord(entries=entries, fetched_at=fetched_at)


class CacheStore:
    """Reads and writes whole cache records on top of a key/value backend.

    Backend failures are logged and reported as "absent" or "not written";
    nothing raises past this adapter.
    """

    def __init__(self, backend: KeyValueStore, prefix: str = "fbr") -> None:
        self.backend = backend
        self.prefix = prefix

    def storage_key(self, kind: ReferenceKind, key: Optional[str] = None) -> str:
        if kind.per_key:
            return f"{self.prefix}{_SEPARATOR}{kind.slug}{_SEPARATOR}{key}{_RECORD_SUFFIX}"
        return f"{self.prefix}{_SEPARATOR}{kind.slug}{_RECORD_SUFFIX}"

    def timestamp_key(self, kind: ReferenceKind, key: Optional[str] = None) -> str:
        return self.storage_key(kind, key) + "_timestamp"

    async def read_record(
        self, kind: ReferenceKind, key: Optional[str] = None, *, repair: bool = True
    ) -> Optional[CacheRecord]:
        """Return the stored record, or None when absent or unreadable.

        With ``repair`` set, corrupt or half-written records are deleted.
        """
        record_key = self.storage_key(kind, key)
        try:
            payload, timestamp = await asyncio.to_thread(
                self._get_pair, record_key, self.timestamp_key(kind, key)
            )
        except Exception:
            logger.exception("Reading cache record %s failed", record_key)
            return None

        if payload is None and timestamp is None:
            return None
        try:
            if payload is None or timestamp is None:
                raise CorruptPersistedRecord("payload and timestamp are not both present")
            return _decode_record(payload, timestamp)
        except CorruptPersistedRecord as exc:
            logger.warning("Discarding corrupt cache record %s: %s", record_key, exc)
            if repair:
                await self.delete_record(kind, key)
            return None

    async def write_record(
        self,
        kind: ReferenceKind,
        key: Optional[str],
        entries: Sequence[ReferenceEntry],
        fetched_at: int,
    ) -> bool:
        record_key = self.storage_key(kind, key)
        try:
            await asyncio.to_thread(
                self._set_pair,
                record_key,
                _encode_entries(entries),
                self.timestamp_key(kind, key),
                str(int(fetched_at)),
            )
        except Exception:
            logger.exception("Writing cache record %s failed", record_key)
            return False
        logger.debug("Cache record %s saved (%d entries)", record_key, len(entries))
        return True

    async def delete_record(self, kind: ReferenceKind, key: Optional[str] = None) -> None:
        record_key = self.storage_key(kind, key)
        try:
            await asyncio.to_thread(self._delete_pair, record_key, self.timestamp_key(kind, key))
        except Exception:
            logger.exception("Deleting cache record %s failed", record_key)

    async def keys(self, kind: ReferenceKind) -> List[str]:
        """Lookup keys with a persisted payload for a per-key kind."""
        if not kind.per_key:
            return []
        prefix = f"{self.prefix}{_SEPARATOR}{kind.slug}{_SEPARATOR}"
        try:
            stored = await asyncio.to_thread(self.backend.keys, prefix)
        except Exception:
            logger.exception("Listing cache keys under %s failed", prefix)
            return []
        lookup_keys = []
        for storage_key in stored:
            if storage_key.endswith(_TIMESTAMP_SUFFIX) or not storage_key.endswith(_RECORD_SUFFIX):
                continue
            lookup_keys.append(storage_key[len(prefix):-len(_RECORD_SUFFIX)])
        return lookup_keys

    # Backend calls, run in a worker thread.
    def _get_pair(self, first: str, second: str) -> Tuple[Optional[str], Optional[str]]:
        return self.backend.get(first), self.backend.get(second)

    def _set_pair(self, record_key: str, payload: str, timestamp_key: str, timestamp: str) -> None:
        self.backend.set(record_key, payload)
        self.backend.set(timestamp_key, timestamp)

    def _delete_pair(self, record_key: str, timestamp_key: str) -> None:
        self.backend.delete(record_key)
        self.backend.delete(timestamp_key)
