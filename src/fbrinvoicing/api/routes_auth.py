"""Authentication and tenant identity endpoints.

Provides /v1/auth/whoami so clients can verify their API key and see which
gateway environments their tenant holds credentials for.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from fbrinvoicing.api.security import require_api_key
from fbrinvoicing.api.tenants import Tenant, resolve_tenant_from_request

router = APIRouter(prefix="/v1/auth", tags=["auth"])


class WhoAmIResponse(BaseModel):
    """Identity and credential summary for the authenticated tenant."""

    tenant_id: str
    name: str
    seller_ntn: str
    seller_business_name: str
    seller_province: str
    environments: List[str]
    created_at: str

    model_config = ConfigDict(extra="forbid")


@router.get("/whoami", response_model=WhoAmIResponse)
def whoami(
    api_key: str = Depends(require_api_key),
    tenant: Tenant = Depends(resolve_tenant_from_request),
) -> WhoAmIResponse:
    """Return identity metadata for the authenticated API key."""
    environments = [
        name
        for name, token in (("sandbox", tenant.sandbox_token), ("production", tenant.production_token))
        if token
    ]
    return WhoAmIResponse(
        tenant_id=tenant.tenant_id,
        name=tenant.name,
        seller_ntn=tenant.seller_ntn,
        seller_business_name=tenant.seller_business_name,
        seller_province=tenant.seller_province,
        environments=environments,
        created_at=tenant.created_at,
    )
