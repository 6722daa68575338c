"""Tenant administration, guarded by ``FBR_ADMIN_KEYS``.

Tokens are never echoed back; responses only say whether each environment
has one configured.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from fbrinvoicing.api.security import require_admin_key
from fbrinvoicing.api.tenants import TENANT_ID_PATTERN, Tenant, get_registry

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/tenants",
    tags=["tenants"],
    dependencies=[Depends(require_admin_key)],
)


class TenantCreateRequest(BaseModel):
    tenant_id: str = Field(..., min_length=1, pattern=TENANT_ID_PATTERN)
    name: str = Field(..., min_length=1)
    api_key: Optional[str] = None
    seller_ntn: str = ""
    seller_business_name: str = ""
    seller_province: str = ""
    sandbox_token: str = ""
    production_token: str = ""

    model_config = ConfigDict(extra="forbid")


class TenantUpdateRequest(BaseModel):
    name: Optional[str] = None
    seller_ntn: Optional[str] = None
    seller_business_name: Optional[str] = None
    seller_province: Optional[str] = None
    sandbox_token: Optional[str] = None
    production_token: Optional[str] = None
    active: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class TenantResponse(BaseModel):
    tenant_id: str
    name: str
    seller_ntn: str
    seller_business_name: str
    seller_province: str
    has_sandbox_token: bool
    has_production_token: bool
    api_key_count: int
    active: bool
    created_at: str
    api_key: Optional[str] = None

    @classmethod
    def from_tenant(cls, tenant: Tenant, api_key: Optional[str] = None) -> "TenantResponse":
        return cls(
            tenant_id=tenant.tenant_id,
            name=tenant.name,
            seller_ntn=tenant.seller_ntn,
            seller_business_name=tenant.seller_business_name,
            seller_province=tenant.seller_province,
            has_sandbox_token=bool(tenant.sandbox_token),
            has_production_token=bool(tenant.production_token),
            api_key_count=len(tenant.api_keys),
            active=tenant.active,
            created_at=tenant.created_at,
            api_key=api_key,
        )


def _get_or_404(tenant_id: str) -> Tenant:
    tenant = get_registry().get_tenant(tenant_id)
    if tenant is None:
        raise HTTPException(status_code=404, detail={"message": f"Unknown tenant: {tenant_id}"})
    return tenant


def _forget_cache(request: Request, tenant_id: str) -> None:
    services = getattr(request.app.state, "services", None)
    if services is not None:
        services.caches.forget(tenant_id)


@router.post("", response_model=TenantResponse, status_code=201)
def create_tenant(req: TenantCreateRequest) -> TenantResponse:
    """Register a tenant; a key is generated when none is supplied."""
    api_key = req.api_key or f"fbr_{secrets.token_urlsafe(24)}"
    try:
        tenant = get_registry().register_tenant(
            tenant_id=req.tenant_id,
            name=req.name,
            api_key=api_key,
            seller_ntn=req.seller_ntn,
            seller_business_name=req.seller_business_name,
            seller_province=req.seller_province,
            sandbox_token=req.sandbox_token,
            production_token=req.production_token,
        )
    except ValueError as exc:
        raise HTTPException(status_code=409, detail={"message": str(exc)})
    return TenantResponse.from_tenant(tenant, api_key=api_key)


@router.get("", response_model=List[TenantResponse])
def list_tenants() -> List[TenantResponse]:
    return [TenantResponse.from_tenant(t) for t in get_registry().list_tenants()]


@router.get("/{tenant_id}", response_model=TenantResponse)
def get_tenant(tenant_id: str) -> TenantResponse:
    return TenantResponse.from_tenant(_get_or_404(tenant_id))


@router.put("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(tenant_id: str, req: TenantUpdateRequest, request: Request) -> TenantResponse:
    _get_or_404(tenant_id)
    changes: Dict[str, Any] = req.model_dump(exclude_none=True)
    tenant = get_registry().update_tenant(tenant_id, **changes)
    if "active" in changes:
        _forget_cache(request, tenant_id)
    logger.info("Updated tenant %s (%s)", tenant_id, ", ".join(sorted(changes)) or "no changes")
    return TenantResponse.from_tenant(tenant)


@router.delete("/{tenant_id}", response_model=TenantResponse)
async def deactivate_tenant(tenant_id: str, request: Request) -> TenantResponse:
    _get_or_404(tenant_id)
    tenant = get_registry().deactivate(tenant_id)
    _forget_cache(request, tenant_id)
    logger.info("Deactivated tenant %s", tenant_id)
    return TenantResponse.from_tenant(tenant)
