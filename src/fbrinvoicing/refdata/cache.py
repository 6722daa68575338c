"""Reference data cache for HS codes, units of measure and other gateway tables.

Lookups are served from memory, then from the persistent store, and only
then from the gateway. Concurrent lookups for the same slot share one
in-flight load. Gateway or storage failures never reach the caller: they
degrade to stale data, or to the static fallback tables when nothing was
ever cached.

A slot is ``(kind, key)``; whole-table kinds use ``key=None``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Union

from fbrinvoicing.errors import FBRError, MalformedResponse, MissingCredential
from fbrinvoicing.invoicing.rates import BILL_OF_LADING_UOM, is_bill_of_lading_rate
from fbrinvoicing.refdata.entries import (
    CACHE_TTL_MS,
    ParseError,
    ReferenceEntry,
    ReferenceKind,
    parse_entries,
)
from fbrinvoicing.refdata.fallback import DEFAULT_FALLBACK, FallbackTable
from fbrinvoicing.refdata.retry import RetryPolicy
from fbrinvoicing.refdata.store import CacheRecord, CacheStore

logger = logging.getLogger(__name__)

SlotKey = Tuple[ReferenceKind, Optional[str]]

BILL_OF_LADING_ENTRY = ReferenceEntry(key="bill_of_lading", description=BILL_OF_LADING_UOM)


class ReferenceFetcher(Protocol):
    """Anything that can pull a raw reference table from the gateway."""

    async def fetch_reference(
        self, kind: ReferenceKind, key: Optional[str], environment: str
    ) -> Any: ...


@dataclass(frozen=True)
class CacheStatus:
    """Diagnostic snapshot of one reference kind."""

    present: bool
    size: int
    valid: bool
    last_fetched_at: Optional[int]
    loading: bool = False
    keys: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "present": self.present,
            "size": self.size,
            "valid": self.valid,
            "last_fetched_at": self.last_fetched_at,
            "loading": self.loading,
            "keys": list(self.keys),
        }


def _now_ms() -> int:
    return int(time.time() * 1000)


class ReferenceDataCache:
    """TTL cache in front of the gateway's reference-data endpoints.

    Build one per credential scope at startup and share it; all state is
    held on the instance.
    """

    def __init__(
        self,
        fetcher: ReferenceFetcher,
        store: CacheStore,
        fallback: Optional[FallbackTable] = None,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], int] = _now_ms,
        ttl_ms: int = CACHE_TTL_MS,
    ) -> None:
        self.fetcher = fetcher
        self.store = store
        self.fallback = fallback or DEFAULT_FALLBACK
        self.retry_policy = retry_policy or RetryPolicy()
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._records: Dict[SlotKey, CacheRecord] = {}
        self._inflight: Dict[SlotKey, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    async def get_all(
        self, kind: ReferenceKind, environment: str = "sandbox", force_refresh: bool = False
    ) -> List[ReferenceEntry]:
        """Return the whole table for ``kind``."""
        if kind.per_key:
            raise ValueError(f"{kind.slug} is looked up per key; use get_one()")
        return await self._get((kind, None), environment, force_refresh)

    async def get_one(
        self,
        kind: ReferenceKind,
        key: Optional[str],
        environment: str = "sandbox",
        force_refresh: bool = False,
        *,
        rate: Optional[str] = None,
    ) -> List[ReferenceEntry]:
        """Return the entries for one lookup key of a per-key kind.

        A UOM lookup for an item whose sales-tax rate is charged per bill of
        lading always resolves to the single "Bill of lading" unit.
        """
        if not kind.per_key:
            raise ValueError(f"{kind.slug} is a whole table; use get_all()")
        if kind is ReferenceKind.UOM and is_bill_of_lading_rate(rate):
            return [BILL_OF_LADING_ENTRY]
        if not key:
            logger.warning("No lookup key given for %s, serving default entries", kind.slug)
            return self.fallback.default(kind)
        return await self._get((kind, key), environment, force_refresh)

    async def refresh(
        self, kind: ReferenceKind, environment: str = "sandbox", key: Optional[str] = None
    ) -> List[ReferenceEntry]:
        """Refetch a slot regardless of its age."""
        if kind.per_key:
            return await self.get_one(kind, key, environment, force_refresh=True)
        return await self.get_all(kind, environment, force_refresh=True)

    def search_local(self, kind: ReferenceKind, term: Optional[str], limit: int = 50) -> List[ReferenceEntry]:
        """Filter the in-memory table for ``kind`` without touching the gateway.

        Matches are case-insensitive substrings of the key or description;
        entries whose key starts with the term come first.
        """
        record = self._records.get((kind, None))
        if record is None or not term:
            return []
        needle = term.strip().lower()
        if len(needle) < 2:
            return []
        matches = [
            entry
            for entry in record.entries
            if needle in entry.key.lower() or needle in entry.description.lower()
        ]
        matches.sort(key=lambda entry: 0 if entry.key.lower().startswith(needle) else 1)
        return matches[: max(0, limit)]

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    async def clear(self, kind: Optional[ReferenceKind] = None) -> None:
        """Drop memory and persisted records for ``kind`` (or every kind)."""
        kinds = [kind] if kind is not None else list(ReferenceKind)
        for target in kinds:
            for slot in [slot for slot in self._records if slot[0] is target]:
                del self._records[slot]
            if target.per_key:
                for key in await self.store.keys(target):
                    await self.store.delete_record(target, key)
            else:
                await self.store.delete_record(target)
            logger.info("Reference cache cleared for %s", target.slug)

    async def status(
        self, kind: Optional[ReferenceKind] = None
    ) -> Union[CacheStatus, Dict[ReferenceKind, CacheStatus]]:
        """Describe what is cached; never fetches or modifies anything."""
        if kind is None:
            statuses: Dict[ReferenceKind, CacheStatus] = {}
            for target in ReferenceKind:
                statuses[target] = await self.status(target)
            return statuses

        now = self._clock()
        loading = any(slot[0] is kind for slot in self._inflight)
        if not kind.per_key:
            record = await self._peek((kind, None))
            if record is None:
                return CacheStatus(present=False, size=0, valid=False, last_fetched_at=None, loading=loading)
            return CacheStatus(
                present=True,
                size=len(record.entries),
                valid=record.is_valid(now, self.ttl_ms),
                last_fetched_at=record.fetched_at,
                loading=loading,
            )

        keys = {slot[1] for slot in self._records if slot[0] is kind}
        keys.update(await self.store.keys(kind))
        present: Dict[str, CacheRecord] = {}
        for key in sorted(k for k in keys if k):
            record = await self._peek((kind, key))
            if record is not None:
                present[key] = record
        if not present:
            return CacheStatus(present=False, size=0, valid=False, last_fetched_at=None, loading=loading)
        return CacheStatus(
            present=True,
            size=len(present),
            valid=any(record.is_valid(now, self.ttl_ms) for record in present.values()),
            last_fetched_at=max(record.fetched_at for record in present.values()),
            loading=loading,
            keys=list(present),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _get(self, slot: SlotKey, environment: str, force_refresh: bool) -> List[ReferenceEntry]:
        # No await between the in-flight check and registering the task.
        pending = self._inflight.get(slot)
        if pending is not None:
            logger.debug("Load of %s already in progress, waiting", _slot_label(slot))
            return list(await asyncio.shield(pending))

        if not force_refresh:
            record = self._records.get(slot)
            if record is not None and record.is_valid(self._clock(), self.ttl_ms):
                return list(record.entries)

        task = asyncio.ensure_future(self._load(slot, environment, force_refresh))
        self._inflight[slot] = task
        return list(await asyncio.shield(task))

    async def _load(self, slot: SlotKey, environment: str, force_refresh: bool) -> List[ReferenceEntry]:
        try:
            if not force_refresh:
                stored = await self._stored_record(slot)
                if stored is not None:
                    return list(stored.entries)
            return await self._refresh(slot, environment)
        finally:
            self._inflight.pop(slot, None)

    async def _stored_record(self, slot: SlotKey) -> Optional[CacheRecord]:
        stored = await self.store.read_record(slot[0], slot[1])
        if stored is not None and stored.is_valid(self._clock(), self.ttl_ms):
            self._records[slot] = stored
            logger.debug("Loaded %s from storage (%d entries)", _slot_label(slot), len(stored.entries))
            return stored
        return None

    async def _peek(self, slot: SlotKey) -> Optional[CacheRecord]:
        record = self._records.get(slot)
        if record is not None:
            return record
        return await self.store.read_record(slot[0], slot[1], repair=False)

    async def _refresh(self, slot: SlotKey, environment: str) -> List[ReferenceEntry]:
        kind, key = slot
        started = time.monotonic()
        try:
            entries = await self._fetch_entries(kind, key, environment)
        except MissingCredential as exc:
            logger.info("%s; serving fallback for %s", exc, _slot_label(slot))
            return await self._fall_back(slot)
        except FBRError as exc:
            logger.warning("Fetching %s failed: %s", _slot_label(slot), exc)
            return await self._fall_back(slot)
        except Exception:
            logger.exception("Unexpected error fetching %s", _slot_label(slot))
            return await self._fall_back(slot)

        record = CacheRecord(entries=entries, fetched_at=self._clock())
        self._records[slot] = record
        await self.store.write_record(kind, key, entries, record.fetched_at)
        logger.info(
            "Fetched %s from gateway in %.0fms (%d entries)",
            _slot_label(slot),
            (time.monotonic() - started) * 1000,
            len(entries),
        )
        return list(entries)

    async def _fetch_entries(
        self, kind: ReferenceKind, key: Optional[str], environment: str
    ) -> List[ReferenceEntry]:
        policy = self.retry_policy if kind.per_key else RetryPolicy.single_attempt()
        attempt = 1
        while True:
            try:
                body = await self.fetcher.fetch_reference(kind, key, environment)
                result = parse_entries(kind, body)
                if isinstance(result, ParseError):
                    raise MalformedResponse(result.reason)
                return result.entries
            except MissingCredential:
                raise
            except FBRError as exc:
                if attempt >= policy.max_attempts:
                    raise
                logger.debug("Attempt %d for %s failed: %s", attempt, kind.slug, exc)
                await policy.wait(attempt)
                attempt += 1

    async def _fall_back(self, slot: SlotKey) -> List[ReferenceEntry]:
        kind, key = slot
        stale = self._records.get(slot) or await self.store.read_record(kind, key)
        if stale is not None and stale.entries:
            self._records[slot] = stale
            logger.info("Using stale %s as fallback", _slot_label(slot))
            return list(stale.entries)

        if kind.per_key:
            return self.fallback.for_key(kind, key)

        entries = self.fallback.table(kind)
        record = CacheRecord(entries=entries, fetched_at=self._clock())
        self._records[slot] = record
        await self.store.write_record(kind, None, entries, record.fetched_at)
        logger.info("Using fallback %s data (%d entries)", kind.slug, len(entries))
        return list(entries)


def _slot_label(slot: SlotKey) -> str:
    kind, key = slot
    return kind.slug if key is None else f"{kind.slug}[{key}]"
