import asyncio

import pytest

from fbrinvoicing.errors import MissingCredential, RemoteUnavailable
from fbrinvoicing.refdata.cache import BILL_OF_LADING_ENTRY, ReferenceDataCache
from fbrinvoicing.refdata.entries import CACHE_TTL_MS, ReferenceEntry, ReferenceKind
from fbrinvoicing.refdata.fallback import DEFAULT_FALLBACK
from fbrinvoicing.refdata.retry import RetryPolicy
from fbrinvoicing.refdata.store import CacheStore, MemoryKeyValueStore

HS = ReferenceKind.HS_CODES
UOM = ReferenceKind.UOM

HS_BODY = [
    {"hS_CODE": "8471.3010", "description": "Laptop computers"},
    {"hS_CODE": "0101.2100", "description": "Horses for breeding"},
    {"hS_CODE": "8517.1219", "description": "Mobile phones, cellular"},
    {"hS_CODE": "3004.9099", "description": "Medicaments containing 8471 components"},
]


class FakeClock:
    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeFetcher:
    def __init__(self, bodies=None, error=None):
        self.bodies = bodies or {}
        self.error = error
        self.calls = []
        self.gate = None

    async def fetch_reference(self, kind, key, environment):
        self.calls.append((kind, key, environment))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        body = self.bodies[kind]
        return body(key) if callable(body) else body


def _make_cache(fetcher, backend=None, clock=None, attempts=3):
    store = CacheStore(backend if backend is not None else MemoryKeyValueStore(), prefix="fbr_test")
    return ReferenceDataCache(
        fetcher,
        store,
        retry_policy=RetryPolicy.immediate(attempts),
        clock=clock or FakeClock(),
    )


def test_get_all_fetches_once_then_serves_memory():
    fetcher = FakeFetcher({HS: HS_BODY})
    cache = _make_cache(fetcher)

    first = asyncio.run(cache.get_all(HS))
    second = asyncio.run(cache.get_all(HS))

    assert [e.key for e in first] == ["8471.3010", "0101.2100", "8517.1219", "3004.9099"]
    assert second == first
    assert len(fetcher.calls) == 1
    assert fetcher.calls[0] == (HS, None, "sandbox")


def test_concurrent_callers_share_one_fetch():
    fetcher = FakeFetcher({HS: HS_BODY})
    cache = _make_cache(fetcher)

    async def scenario():
        fetcher.gate = asyncio.Event()
        callers = [asyncio.ensure_future(cache.get_all(HS)) for _ in range(5)]
        await asyncio.sleep(0)
        assert (await cache.status(HS)).loading is True
        fetcher.gate.set()
        results = await asyncio.gather(*callers)
        return results, await cache.status(HS)

    results, status = asyncio.run(scenario())

    assert len(fetcher.calls) == 1
    assert all(result == results[0] for result in results)
    assert [e.key for e in results[0]] == [item["hS_CODE"] for item in HS_BODY]
    assert status.loading is False


def test_concurrent_get_one_shares_a_fetch_per_key():
    fetcher = FakeFetcher({UOM: lambda key: [{"uoM_ID": 13, "description": f"KG for {key}"}]})
    cache = _make_cache(fetcher)

    async def scenario():
        fetcher.gate = asyncio.Event()
        same_key = [asyncio.ensure_future(cache.get_one(UOM, "8471.3010")) for _ in range(4)]
        other_key = asyncio.ensure_future(cache.get_one(UOM, "8517.1219"))
        await asyncio.sleep(0)
        fetcher.gate.set()
        return await asyncio.gather(*same_key), await other_key

    same, other = asyncio.run(scenario())

    assert sorted(call[1] for call in fetcher.calls) == ["8471.3010", "8517.1219"]
    assert all(result == [ReferenceEntry("13", "KG for 8471.3010")] for result in same)
    assert other == [ReferenceEntry("13", "KG for 8517.1219")]


def test_concurrent_callers_share_one_failed_fetch_and_its_fallback():
    fetcher = FakeFetcher(error=RemoteUnavailable("down", status_code=503))
    cache = _make_cache(fetcher, attempts=2)

    async def scenario():
        fetcher.gate = asyncio.Event()
        callers = [asyncio.ensure_future(cache.get_one(UOM, "0101.10.00")) for _ in range(5)]
        await asyncio.sleep(0)
        fetcher.gate.set()
        return await asyncio.gather(*callers)

    results = asyncio.run(scenario())

    assert len(fetcher.calls) == 2
    assert all(result == DEFAULT_FALLBACK.for_key(UOM, "0101.10.00") for result in results)
    assert [e.key for e in results[0]] == ["kg", "pcs"]


def test_record_expires_after_ttl():
    clock = FakeClock()
    fetcher = FakeFetcher({HS: HS_BODY})
    cache = _make_cache(fetcher, clock=clock)

    asyncio.run(cache.get_all(HS))
    clock.advance(CACHE_TTL_MS - 1)
    asyncio.run(cache.get_all(HS))
    assert len(fetcher.calls) == 1

    clock.advance(1)
    asyncio.run(cache.get_all(HS))
    assert len(fetcher.calls) == 2


def test_force_refresh_and_refresh_bypass_valid_record():
    fetcher = FakeFetcher({HS: HS_BODY})
    cache = _make_cache(fetcher)

    asyncio.run(cache.get_all(HS))
    asyncio.run(cache.get_all(HS, force_refresh=True))
    asyncio.run(cache.refresh(HS, "production"))

    assert len(fetcher.calls) == 3
    assert fetcher.calls[-1][2] == "production"


def test_restart_reads_persisted_record_without_fetching():
    backend = MemoryKeyValueStore()
    clock = FakeClock()
    warm = _make_cache(FakeFetcher({HS: HS_BODY}), backend=backend, clock=clock)
    expected = asyncio.run(warm.get_all(HS))

    fetcher = FakeFetcher({HS: HS_BODY})
    restarted = _make_cache(fetcher, backend=backend, clock=clock)

    assert asyncio.run(restarted.get_all(HS)) == expected
    assert fetcher.calls == []
    assert asyncio.run(restarted.status(HS)).present is True


def test_failure_with_nothing_cached_serves_and_persists_fallback():
    backend = MemoryKeyValueStore()
    fetcher = FakeFetcher(error=RemoteUnavailable("down", status_code=503))
    cache = _make_cache(fetcher, backend=backend)

    entries = asyncio.run(cache.get_all(HS))

    assert entries == DEFAULT_FALLBACK.table(HS)
    assert entries
    assert asyncio.run(cache.store.read_record(HS)) is not None

    asyncio.run(cache.get_all(HS))
    assert len(fetcher.calls) == 1


def test_failure_prefers_stale_record_over_fallback():
    clock = FakeClock()
    fetcher = FakeFetcher({HS: HS_BODY})
    cache = _make_cache(fetcher, clock=clock)
    fresh = asyncio.run(cache.get_all(HS))

    clock.advance(CACHE_TTL_MS + 1)
    fetcher.error = RemoteUnavailable("timeout")

    assert asyncio.run(cache.get_all(HS)) == fresh
    assert len(fetcher.calls) == 2


def test_malformed_body_falls_back():
    fetcher = FakeFetcher({ReferenceKind.PROVINCES: {"error": "unexpected"}})
    cache = _make_cache(fetcher)

    entries = asyncio.run(cache.get_all(ReferenceKind.PROVINCES))

    assert ReferenceEntry("7", "PUNJAB") in entries


def test_unexpected_fetcher_error_never_reaches_caller():
    fetcher = FakeFetcher(error=RuntimeError("boom"))
    cache = _make_cache(fetcher)

    entries = asyncio.run(cache.get_all(ReferenceKind.DOC_TYPES))

    assert [e.key for e in entries] == ["4", "9"]


def test_empty_list_is_a_valid_payload():
    fetcher = FakeFetcher({ReferenceKind.DOC_TYPES: []})
    cache = _make_cache(fetcher)

    assert asyncio.run(cache.get_all(ReferenceKind.DOC_TYPES)) == []
    status = asyncio.run(cache.status(ReferenceKind.DOC_TYPES))
    assert status.present is True
    assert status.size == 0


def test_get_one_caches_per_key():
    fetcher = FakeFetcher({UOM: lambda key: [{"uoM_ID": 13, "description": f"KG for {key}"}]})
    cache = _make_cache(fetcher)

    a = asyncio.run(cache.get_one(UOM, "8471.3010"))
    b = asyncio.run(cache.get_one(UOM, "8517.1219"))
    asyncio.run(cache.get_one(UOM, "8471.3010"))

    assert a == [ReferenceEntry("13", "KG for 8471.3010")]
    assert b == [ReferenceEntry("13", "KG for 8517.1219")]
    assert len(fetcher.calls) == 2
    assert asyncio.run(cache.status(UOM)).keys == ["8471.3010", "8517.1219"]


def test_get_one_retries_then_serves_curated_fallback_without_persisting():
    fetcher = FakeFetcher(error=RemoteUnavailable("bad gateway", status_code=502))
    cache = _make_cache(fetcher, attempts=3)

    entries = asyncio.run(cache.get_one(UOM, "0101.10.00"))

    assert [e.key for e in entries] == ["kg", "pcs"]
    assert len(fetcher.calls) == 3
    assert asyncio.run(cache.store.read_record(UOM, "0101.10.00")) is None


def test_get_one_unknown_key_falls_back_to_default_bucket():
    fetcher = FakeFetcher(error=RemoteUnavailable("down"))
    cache = _make_cache(fetcher, attempts=1)

    entries = asyncio.run(cache.get_one(UOM, "9999.9999"))

    keys = [e.key for e in entries]
    assert "bill_of_lading" in keys
    assert "sqy" in keys
    assert len(fetcher.calls) == 1


def test_missing_credential_is_not_retried():
    fetcher = FakeFetcher(error=MissingCredential("production"))
    cache = _make_cache(fetcher, attempts=3)

    entries = asyncio.run(cache.get_one(UOM, "0101.90.00", "production"))

    assert entries
    assert len(fetcher.calls) == 1


def test_bill_of_lading_rate_short_circuits_uom_lookup():
    fetcher = FakeFetcher(error=AssertionError("must not fetch"))
    cache = _make_cache(fetcher)

    entries = asyncio.run(cache.get_one(UOM, "9801.0000", rate="1.00/bill"))

    assert entries == [BILL_OF_LADING_ENTRY]
    assert fetcher.calls == []
    assert asyncio.run(cache.status(UOM)).present is False


def test_empty_key_serves_default_bucket_without_fetching():
    fetcher = FakeFetcher({UOM: []})
    cache = _make_cache(fetcher)

    entries = asyncio.run(cache.get_one(UOM, ""))

    assert entries == DEFAULT_FALLBACK.default(UOM)
    assert fetcher.calls == []


def test_kind_shape_is_enforced():
    cache = _make_cache(FakeFetcher())

    with pytest.raises(ValueError):
        asyncio.run(cache.get_all(UOM))
    with pytest.raises(ValueError):
        asyncio.run(cache.get_one(HS, "0101.2100"))


def test_search_local_ranks_prefix_matches_first():
    cache = _make_cache(FakeFetcher({HS: HS_BODY}))
    assert cache.search_local(HS, "8471") == []

    asyncio.run(cache.get_all(HS))
    results = cache.search_local(HS, "8471")

    assert [e.key for e in results] == ["8471.3010", "3004.9099"]
    assert [e.key for e in cache.search_local(HS, "  HORSES ")] == ["0101.2100"]
    assert len(cache.search_local(HS, "0", limit=2)) == 0
    assert len(cache.search_local(HS, "01", limit=1)) == 1


def test_search_local_rejects_short_terms():
    cache = _make_cache(FakeFetcher({HS: HS_BODY}))
    asyncio.run(cache.get_all(HS))

    assert cache.search_local(HS, "8") == []
    assert cache.search_local(HS, " 8 ") == []
    assert cache.search_local(HS, None) == []


def test_clear_is_idempotent_and_removes_persisted_records():
    backend = MemoryKeyValueStore()
    fetcher = FakeFetcher({HS: HS_BODY, UOM: [{"uoM_ID": "kg", "description": "KG"}]})
    cache = _make_cache(fetcher, backend=backend)

    async def scenario():
        await cache.get_all(HS)
        await cache.get_one(UOM, "8471.3010")
        await cache.get_one(UOM, "8517.1219")

        await cache.clear(HS)
        await cache.clear(HS)
        assert (await cache.status(HS)).present is False
        assert (await cache.status(UOM)).present is True

        await cache.clear()
        assert (await cache.status(UOM)).present is False

    asyncio.run(scenario())
    assert backend.keys("fbr_test") == []


def test_clear_leaves_a_nested_tenant_prefix_alone():
    backend = MemoryKeyValueStore()
    acme = ReferenceDataCache(FakeFetcher({UOM: []}), CacheStore(backend, prefix="fbr_acme"))
    acme_uom = ReferenceDataCache(FakeFetcher({HS: HS_BODY}), CacheStore(backend, prefix="fbr_acme_uom"))

    async def scenario():
        await acme_uom.get_all(HS)
        uom_status = await acme.status(UOM)
        await acme.clear(UOM)
        await acme.clear()
        return uom_status, await acme_uom.store.read_record(HS)

    uom_status, other_tenant_record = asyncio.run(scenario())

    assert uom_status.present is False
    assert uom_status.keys == []
    assert other_tenant_record is not None
    assert len(other_tenant_record.entries) == len(HS_BODY)


def test_status_is_read_only():
    backend = MemoryKeyValueStore(
        {
            "fbr_test:hs_codes_cache": "not json",
            "fbr_test:hs_codes_cache_timestamp": "1",
        }
    )
    fetcher = FakeFetcher({HS: HS_BODY})
    cache = _make_cache(fetcher, backend=backend)

    statuses = asyncio.run(cache.status())

    assert set(statuses) == set(ReferenceKind)
    assert statuses[HS].present is False
    assert backend.get("fbr_test:hs_codes_cache") == "not json"
    assert fetcher.calls == []


def test_status_reports_validity_and_fetch_time():
    clock = FakeClock()
    cache = _make_cache(FakeFetcher({HS: HS_BODY}), clock=clock)
    asyncio.run(cache.get_all(HS))

    status = asyncio.run(cache.status(HS))
    assert status.present and status.valid
    assert status.size == len(HS_BODY)
    assert status.last_fetched_at == clock.now

    clock.advance(CACHE_TTL_MS)
    assert asyncio.run(cache.status(HS)).valid is False
