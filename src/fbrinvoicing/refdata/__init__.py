"""Gateway reference data (HS codes, units of measure, provinces, document types, rates, SRO schedules)."""

from fbrinvoicing.refdata.cache import BILL_OF_LADING_ENTRY, CacheStatus, ReferenceDataCache
from fbrinvoicing.refdata.entries import (
    CACHE_TTL_MS,
    ReferenceEntry,
    ReferenceKind,
    gateway_date,
    parse_entries,
    rate_lookup_key,
    sro_lookup_key,
)
from fbrinvoicing.refdata.fallback import DEFAULT_FALLBACK, FallbackTable
from fbrinvoicing.refdata.retry import RetryPolicy, linear_backoff
from fbrinvoicing.refdata.store import (
    CacheRecord,
    CacheStore,
    KeyValueStore,
    MemoryKeyValueStore,
    SqlKeyValueStore,
)

__all__ = [
    "BILL_OF_LADING_ENTRY",
    "CACHE_TTL_MS",
    "CacheRecord",
    "CacheStatus",
    "CacheStore",
    "DEFAULT_FALLBACK",
    "FallbackTable",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "ReferenceDataCache",
    "ReferenceEntry",
    "ReferenceKind",
    "RetryPolicy",
    "SqlKeyValueStore",
    "gateway_date",
    "linear_backoff",
    "parse_entries",
    "rate_lookup_key",
    "sro_lookup_key",
]
