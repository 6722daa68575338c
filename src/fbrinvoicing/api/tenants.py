"""Tenant registry.

Each API key maps to a tenant (a company registered with FBR). A tenant
carries its own gateway bearer tokens for the sandbox and production
environments. Tenant-scoped data is separated by key prefix only.

The registry is a JSON file under ``$FBR_DATA_ROOT/data/tenants.json``.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Request

logger = logging.getLogger(__name__)

# Tenant ids become part of cache storage keys, so ":" is never allowed.
TENANT_ID_PATTERN = r"^[A-Za-z0-9_-]+$"


# ---------------------------------------------------------------------------
# Tenant model
# ---------------------------------------------------------------------------
@dataclass
class Tenant:
    """A company account with its FBR credentials."""

    tenant_id: str
    name: str
    api_keys: List[str] = field(default_factory=list)
    seller_ntn: str = ""
    seller_business_name: str = ""
    seller_province: str = ""
    sandbox_token: str = ""
    production_token: str = ""
    active: bool = True
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Tenant:
        return cls(**data)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
class TenantRegistry:
    """Maps API keys to tenants and persists them to a JSON file."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._tenants: Dict[str, Tenant] = {}
        self._key_to_tenant: Dict[str, str] = {}
        self.path = path or Path(os.getenv("FBR_DATA_ROOT", ".")) / "data" / "tenants.json"
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            logger.exception("Could not read tenant registry %s", self.path)
            return
        for t_data in data.get("tenants", []):
            tenant = Tenant.from_dict(t_data)
            self._tenants[tenant.tenant_id] = tenant
            for key in tenant.api_keys:
                self._key_to_tenant[key] = tenant.tenant_id

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {"tenants": [t.to_dict() for t in self._tenants.values()]}
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def register_tenant(
        self,
        tenant_id: str,
        name: str,
        api_key: str,
        *,
        seller_ntn: str = "",
        seller_business_name: str = "",
        seller_province: str = "",
        sandbox_token: str = "",
        production_token: str = "",
    ) -> Tenant:
        """Create a tenant and associate its first API key."""
        if not re.match(TENANT_ID_PATTERN, tenant_id):
            raise ValueError(f"Invalid tenant id: {tenant_id!r}")
        tenant = Tenant(
            tenant_id=tenant_id,
            name=name,
            api_keys=[api_key],
            seller_ntn=seller_ntn,
            seller_business_name=seller_business_name or name,
            seller_province=seller_province,
            sandbox_token=sandbox_token,
            production_token=production_token,
        )
        with self._lock:
            if tenant_id in self._tenants:
                raise ValueError(f"Tenant already exists: {tenant_id}")
            self._tenants[tenant_id] = tenant
            self._key_to_tenant[api_key] = tenant_id
            self._persist()
        logger.info("Registered tenant %s", tenant_id)
        return tenant

    def add_api_key(self, tenant_id: str, api_key: str) -> None:
        """Associate an additional API key with a tenant."""
        with self._lock:
            if tenant_id not in self._tenants:
                raise KeyError(f"Unknown tenant: {tenant_id}")
            self._tenants[tenant_id].api_keys.append(api_key)
            self._key_to_tenant[api_key] = tenant_id
            self._persist()

    def update_tenant(self, tenant_id: str, **changes: Any) -> Tenant:
        """Apply field changes (name, seller details, tokens, active)."""
        allowed = {
            "name",
            "seller_ntn",
            "seller_business_name",
            "seller_province",
            "sandbox_token",
            "production_token",
            "active",
            "metadata",
        }
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        with self._lock:
            tenant = self._tenants.get(tenant_id)
            if tenant is None:
                raise KeyError(f"Unknown tenant: {tenant_id}")
            for name, value in changes.items():
                if value is not None:
                    setattr(tenant, name, value)
            self._persist()
            return tenant

    def deactivate(self, tenant_id: str) -> Tenant:
        return self.update_tenant(tenant_id, active=False)

    def resolve(self, api_key: str) -> Optional[Tenant]:
        """Look up the tenant for an API key."""
        tenant_id = self._key_to_tenant.get(api_key)
        if tenant_id is None:
            # Another process may have provisioned the key.
            self._load()
            tenant_id = self._key_to_tenant.get(api_key)
        if tenant_id is None:
            return None
        return self._tenants.get(tenant_id)

    def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        tenant = self._tenants.get(tenant_id)
        if not tenant:
            self._load()
            tenant = self._tenants.get(tenant_id)
        return tenant

    def list_tenants(self) -> List[Tenant]:
        return sorted(self._tenants.values(), key=lambda t: t.tenant_id)


# ---------------------------------------------------------------------------
# Singleton registry
# ---------------------------------------------------------------------------
_registry: Optional[TenantRegistry] = None


def get_registry() -> TenantRegistry:
    """Return the process-wide tenant registry, seeding the dev tenant once."""
    global _registry
    if _registry is None:
        _registry = TenantRegistry()
        _seed_default_tenant(_registry)
    return _registry


def reset_registry() -> None:
    """Forget the cached registry so the next call rereads ``FBR_DATA_ROOT``."""
    global _registry
    _registry = None


def _seed_default_tenant(registry: TenantRegistry) -> None:
    """Create a default tenant for development / single-tenant mode."""
    default_key = os.getenv("FBR_API_KEY", "dev-key-local")
    if registry.resolve(default_key) is None:
        registry.register_tenant(
            tenant_id="default",
            name="Development Tenant",
            api_key=default_key,
            sandbox_token=os.getenv("FBR_SANDBOX_TOKEN", ""),
            production_token=os.getenv("FBR_PRODUCTION_TOKEN", ""),
        )


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------
def resolve_tenant_from_request(request: Request) -> Tenant:
    """FastAPI dependency that extracts the tenant from the API key header.

    Returns the Tenant or raises 401/403.
    """
    from fastapi import HTTPException

    api_key = request.headers.get("X-API-Key")
    if not api_key:
        raise HTTPException(status_code=401, detail={"message": "Missing API key"})
    tenant = get_registry().resolve(api_key)
    if tenant is None:
        raise HTTPException(status_code=401, detail={"message": "Invalid API key"})
    if not tenant.active:
        raise HTTPException(status_code=403, detail={"message": "Tenant is deactivated"})
    return tenant


def tenant_storage_prefix(tenant: Tenant, app_prefix: str = "fbr") -> str:
    """Return the cache key prefix for tenant-scoped data."""
    return f"{app_prefix}_{tenant.tenant_id}"
