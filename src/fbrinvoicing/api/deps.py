"""FastAPI dependencies shared by the routers.

The reference caches and the per-tenant cache registry are only touched
from the event loop, so these dependencies stay coroutines.
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request

from fbrinvoicing.api.tenants import Tenant, resolve_tenant_from_request
from fbrinvoicing.bootstrap import Services, build_services
from fbrinvoicing.gateway.client import FBRGatewayClient
from fbrinvoicing.refdata.cache import ReferenceDataCache

logger = logging.getLogger(__name__)


async def get_services(request: Request) -> Services:
    """Return the app's services, building them if the lifespan hook did not run."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        try:
            services = build_services()
        except Exception as exc:
            logger.exception("Service bootstrap failed during request")
            raise HTTPException(status_code=503, detail="Services not initialised") from exc
        request.app.state.services = services
    return services


async def get_reference_cache(
    services: Services = Depends(get_services),
    tenant: Tenant = Depends(resolve_tenant_from_request),
) -> ReferenceDataCache:
    return services.caches.for_tenant(tenant)


async def get_gateway(
    services: Services = Depends(get_services),
    tenant: Tenant = Depends(resolve_tenant_from_request),
) -> FBRGatewayClient:
    return services.caches.gateway_for(tenant)
