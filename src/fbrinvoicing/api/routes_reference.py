"""Reference-data endpoints backed by the tenant's reference cache."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict

from fbrinvoicing.api.deps import get_reference_cache
from fbrinvoicing.api.security import require_api_key
from fbrinvoicing.refdata.cache import ReferenceDataCache
from fbrinvoicing.refdata.entries import ReferenceEntry, ReferenceKind, rate_lookup_key, sro_lookup_key

router = APIRouter(
    prefix="/api/reference",
    tags=["reference"],
    dependencies=[Depends(require_api_key)],
)

Environment = Literal["sandbox", "production"]


class ReferenceEntryModel(BaseModel):
    key: str
    description: str

    model_config = ConfigDict(extra="forbid")


class ReferenceListResponse(BaseModel):
    kind: str
    count: int
    items: List[ReferenceEntryModel]


class CacheStatusModel(BaseModel):
    present: bool
    size: int
    valid: bool
    last_fetched_at: Optional[int] = None
    loading: bool = False
    keys: List[str] = []


class CacheClearResponse(BaseModel):
    cleared: List[str]


def _listing(kind: ReferenceKind, entries: List[ReferenceEntry]) -> ReferenceListResponse:
    return ReferenceListResponse(
        kind=kind.slug,
        count=len(entries),
        items=[ReferenceEntryModel(key=e.key, description=e.description) for e in entries],
    )


@router.get("/hs-codes", response_model=ReferenceListResponse)
async def list_hs_codes(
    environment: Environment = "sandbox",
    force_refresh: bool = False,
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> ReferenceListResponse:
    entries = await cache.get_all(ReferenceKind.HS_CODES, environment, force_refresh)
    return _listing(ReferenceKind.HS_CODES, entries)


@router.get("/hs-codes/search", response_model=ReferenceListResponse)
async def search_hs_codes(
    q: str = Query(..., description="Code or description fragment"),
    limit: int = Query(50, ge=1, le=500),
    environment: Environment = "sandbox",
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> ReferenceListResponse:
    # Make sure the table is loaded before filtering it in memory.
    await cache.get_all(ReferenceKind.HS_CODES, environment)
    return _listing(ReferenceKind.HS_CODES, cache.search_local(ReferenceKind.HS_CODES, q, limit))


@router.get("/uom/{hs_code}", response_model=ReferenceListResponse)
async def list_uom(
    hs_code: str,
    environment: Environment = "sandbox",
    rate: Optional[str] = None,
    force_refresh: bool = False,
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> ReferenceListResponse:
    entries = await cache.get_one(ReferenceKind.UOM, hs_code, environment, force_refresh, rate=rate)
    return _listing(ReferenceKind.UOM, entries)


@router.get("/provinces", response_model=ReferenceListResponse)
async def list_provinces(
    environment: Environment = "sandbox",
    force_refresh: bool = False,
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> ReferenceListResponse:
    entries = await cache.get_all(ReferenceKind.PROVINCES, environment, force_refresh)
    return _listing(ReferenceKind.PROVINCES, entries)


@router.get("/doc-types", response_model=ReferenceListResponse)
async def list_doc_types(
    environment: Environment = "sandbox",
    force_refresh: bool = False,
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> ReferenceListResponse:
    entries = await cache.get_all(ReferenceKind.DOC_TYPES, environment, force_refresh)
    return _listing(ReferenceKind.DOC_TYPES, entries)


@router.get("/rates", response_model=ReferenceListResponse)
async def list_rates(
    trans_type_id: str = Query(..., min_length=1, description="Sale type id, e.g. 18"),
    origination_supplier: str = Query(..., min_length=1, description="Seller province code"),
    date: Optional[str] = Query(None, description="Effective date as DD-Mon-YYYY; today when omitted"),
    environment: Environment = "sandbox",
    force_refresh: bool = False,
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> ReferenceListResponse:
    """Sales-tax rates that apply to one sale type in one province."""
    key = rate_lookup_key(trans_type_id, origination_supplier, date)
    entries = await cache.get_one(ReferenceKind.RATES, key, environment, force_refresh)
    return _listing(ReferenceKind.RATES, entries)


@router.get("/sro-schedule", response_model=ReferenceListResponse)
async def list_sro_schedule(
    rate_id: str = Query(..., min_length=1, description="Rate id from /rates"),
    origination_supplier: str = Query(..., min_length=1, description="Seller province code"),
    date: Optional[str] = Query(None, description="Effective date as DD-Mon-YYYY; today when omitted"),
    environment: Environment = "sandbox",
    force_refresh: bool = False,
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> ReferenceListResponse:
    key = sro_lookup_key(rate_id, origination_supplier, date)
    entries = await cache.get_one(ReferenceKind.SRO_SCHEDULE, key, environment, force_refresh)
    return _listing(ReferenceKind.SRO_SCHEDULE, entries)


@router.get("/cache/status", response_model=Dict[str, CacheStatusModel])
async def cache_status(
    kind: Optional[ReferenceKind] = None,
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> Dict[str, CacheStatusModel]:
    if kind is not None:
        status = await cache.status(kind)
        return {kind.slug: CacheStatusModel(**status.to_dict())}
    statuses = await cache.status()
    return {k.slug: CacheStatusModel(**status.to_dict()) for k, status in statuses.items()}


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(
    kind: Optional[ReferenceKind] = None,
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> CacheClearResponse:
    await cache.clear(kind)
    cleared = [kind.slug] if kind is not None else [k.slug for k in ReferenceKind]
    return CacheClearResponse(cleared=cleared)


@router.post("/cache/refresh", response_model=ReferenceListResponse)
async def refresh_cache(
    kind: ReferenceKind = ReferenceKind.HS_CODES,
    key: Optional[str] = None,
    environment: Environment = "sandbox",
    cache: ReferenceDataCache = Depends(get_reference_cache),
) -> ReferenceListResponse:
    entries = await cache.refresh(kind, environment, key=key)
    return _listing(kind, entries)
