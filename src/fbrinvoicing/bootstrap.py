"""Service construction shared by the API and scripts.

Nothing heavyweight happens at import time; callers decide when to build
the services (the API does it in its lifespan hook).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from fbrinvoicing.api.tenants import Tenant, tenant_storage_prefix
from fbrinvoicing.config import Settings
from fbrinvoicing.gateway.client import FBRGatewayClient
from fbrinvoicing.gateway.tokens import TenantTokenProvider
from fbrinvoicing.refdata.cache import ReferenceDataCache
from fbrinvoicing.refdata.fallback import DEFAULT_FALLBACK, FallbackTable
from fbrinvoicing.refdata.retry import RetryPolicy, linear_backoff
from fbrinvoicing.refdata.store import CacheStore, KeyValueStore, MemoryKeyValueStore, SqlKeyValueStore

LOGGER = logging.getLogger(__name__)


def build_key_value_store(settings: Settings) -> KeyValueStore:
    """Pick the persistent backend named by ``FBR_CACHE_BACKEND``."""
    backend = settings.cache_backend
    if backend == "memory":
        return MemoryKeyValueStore()
    if backend == "redis":
        from fbrinvoicing.refdata.redis_store import RedisKeyValueStore

        return RedisKeyValueStore(settings.redis_url)
    if backend != "sql":
        LOGGER.warning("Unknown cache backend %r, using sql", backend)
    return SqlKeyValueStore(settings.resolved_cache_db_url)


@dataclass
class ReferenceCacheRegistry:
    """One reference cache per tenant over a shared store and HTTP client."""

    settings: Settings
    backend: KeyValueStore
    http_client: httpx.AsyncClient
    fallback: FallbackTable = DEFAULT_FALLBACK
    retry_policy: Optional[RetryPolicy] = None
    _caches: Dict[str, ReferenceDataCache] = field(default_factory=dict)

    def gateway_for(self, tenant: Tenant) -> FBRGatewayClient:
        return FBRGatewayClient(
            TenantTokenProvider(tenant),
            base_url=self.settings.base_url,
            http_client=self.http_client,
        )

    def for_tenant(self, tenant: Tenant) -> ReferenceDataCache:
        cache = self._caches.get(tenant.tenant_id)
        if cache is None:
            store = CacheStore(self.backend, prefix=tenant_storage_prefix(tenant, self.settings.cache_prefix))
            policy = self.retry_policy or RetryPolicy(
                max_attempts=self.settings.uom_max_attempts,
                backoff=linear_backoff(self.settings.uom_retry_delay),
            )
            cache = ReferenceDataCache(self.gateway_for(tenant), store, self.fallback, retry_policy=policy)
            self._caches[tenant.tenant_id] = cache
        else:
            # Credentials can be rotated through the admin API.
            cache.fetcher.token_provider.tenant = tenant
        return cache

    def forget(self, tenant_id: str) -> None:
        self._caches.pop(tenant_id, None)


@dataclass
class Services:
    settings: Settings
    http_client: httpx.AsyncClient
    caches: ReferenceCacheRegistry

    async def aclose(self) -> None:
        await self.http_client.aclose()


def build_services(
    settings: Optional[Settings] = None,
    *,
    backend: Optional[KeyValueStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> Services:
    """Build the shared HTTP client, cache store and per-tenant cache registry.

    ``backend``, ``transport`` and ``retry_policy`` are injection points for
    tests; production callers pass only settings.
    """
    settings = settings or Settings.from_env()
    http_client = httpx.AsyncClient(timeout=settings.http_timeout, transport=transport)
    caches = ReferenceCacheRegistry(
        settings=settings,
        backend=backend or build_key_value_store(settings),
        http_client=http_client,
        retry_policy=retry_policy,
    )
    LOGGER.info("Services ready (cache backend %s, gateway %s)", settings.cache_backend, settings.base_url)
    return Services(settings=settings, http_client=http_client, caches=caches)
