"""Typed Python SDK for the fbr-invoicing API."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests  # type: ignore[import-untyped]
from pydantic import BaseModel


class ReferenceEntry(BaseModel):
    key: str
    description: str


class ReferenceList(BaseModel):
    kind: str
    count: int
    items: List[ReferenceEntry]


class CacheStatus(BaseModel):
    present: bool
    size: int
    valid: bool
    last_fetched_at: Optional[int] = None
    loading: bool = False
    keys: List[str] = []


class VersionInfo(BaseModel):
    engine_version: str
    build: Optional[str] = None
    gateway: Optional[str] = None


class WhoAmI(BaseModel):
    tenant_id: str
    name: str
    seller_ntn: str
    seller_business_name: str
    seller_province: str
    environments: List[str]
    created_at: str


@dataclass
class FBRConfig:
    """Configuration for :class:`FBRClient`."""

    base_url: Optional[str] = None
    api_key: Optional[str] = None

    @property
    def resolved_base_url(self) -> str:
        if self.base_url:
            return self.base_url
        env_value = os.getenv("FBR_BASE_URL_LOCAL")
        if env_value:
            return env_value
        return "http://localhost:8000"

    @property
    def resolved_api_key(self) -> str:
        if self.api_key:
            return self.api_key
        env_value = os.getenv("FBR_API_KEY")
        if env_value:
            return env_value
        return "dev-key-local"


class FBRClient:
    """High-level synchronous client for the fbr-invoicing REST API."""

    def __init__(self, cfg: Optional[FBRConfig] = None, session: Optional[requests.Session] = None):
        self.cfg = cfg or FBRConfig()
        self._session = session or requests.Session()
        self._session.headers.setdefault("X-API-Key", self.cfg.resolved_api_key)

    @property
    def base_url(self) -> str:
        return self.cfg.resolved_base_url

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = self._session.get(f"{self.base_url}{path}", params=params)
        response.raise_for_status()
        return response.json()

    def hs_codes(self, environment: str = "sandbox", force_refresh: bool = False) -> ReferenceList:
        """Return the full HS code table."""

        data = self._get(
            "/api/reference/hs-codes",
            {"environment": environment, "force_refresh": force_refresh},
        )
        return ReferenceList.model_validate(data)

    def search_hs_codes(self, q: str, limit: int = 50, environment: str = "sandbox") -> ReferenceList:
        data = self._get(
            "/api/reference/hs-codes/search",
            {"q": q, "limit": limit, "environment": environment},
        )
        return ReferenceList.model_validate(data)

    def uom(
        self,
        hs_code: str,
        rate: Optional[str] = None,
        environment: str = "sandbox",
        force_refresh: bool = False,
    ) -> ReferenceList:
        """Return the units of measure allowed for one HS code.

        Args:
            hs_code: Classification code to look up.
            rate: Sales-tax rate string of the item; ``/bill`` rates always
                resolve to the bill-of-lading unit.
            environment: ``sandbox`` or ``production``.
            force_refresh: Bypass the cached copy.
        Returns:
            Parsed :class:`ReferenceList` payload.
        """

        params: Dict[str, Any] = {"environment": environment, "force_refresh": force_refresh}
        if rate is not None:
            params["rate"] = rate
        return ReferenceList.model_validate(self._get(f"/api/reference/uom/{hs_code}", params))

    def provinces(self, environment: str = "sandbox") -> ReferenceList:
        return ReferenceList.model_validate(
            self._get("/api/reference/provinces", {"environment": environment})
        )

    def doc_types(self, environment: str = "sandbox") -> ReferenceList:
        return ReferenceList.model_validate(
            self._get("/api/reference/doc-types", {"environment": environment})
        )

    def rates(
        self,
        trans_type_id: Any,
        origination_supplier: Any,
        date: Optional[str] = None,
        environment: str = "sandbox",
    ) -> ReferenceList:
        params: Dict[str, Any] = {
            "trans_type_id": trans_type_id,
            "origination_supplier": origination_supplier,
            "environment": environment,
        }
        if date is not None:
            params["date"] = date
        return ReferenceList.model_validate(self._get("/api/reference/rates", params))

    def sro_schedule(
        self,
        rate_id: Any,
        origination_supplier: Any,
        date: Optional[str] = None,
        environment: str = "sandbox",
    ) -> ReferenceList:
        params: Dict[str, Any] = {
            "rate_id": rate_id,
            "origination_supplier": origination_supplier,
            "environment": environment,
        }
        if date is not None:
            params["date"] = date
        return ReferenceList.model_validate(self._get("/api/reference/sro-schedule", params))

    def cache_status(self, kind: Optional[str] = None) -> Dict[str, CacheStatus]:
        params = {"kind": kind} if kind else None
        data = self._get("/api/reference/cache/status", params)
        return {name: CacheStatus.model_validate(status) for name, status in data.items()}

    def clear_cache(self, kind: Optional[str] = None) -> Dict[str, Any]:
        params = {"kind": kind} if kind else None
        response = self._session.delete(f"{self.base_url}/api/reference/cache", params=params)
        response.raise_for_status()
        return response.json()

    def refresh_cache(
        self, kind: str = "hs_codes", key: Optional[str] = None, environment: str = "sandbox"
    ) -> ReferenceList:
        """Refetch one cached table (or one lookup key) from FBR."""

        params: Dict[str, Any] = {"kind": kind, "environment": environment}
        if key is not None:
            params["key"] = key
        response = self._session.post(f"{self.base_url}/api/reference/cache/refresh", params=params)
        response.raise_for_status()
        return ReferenceList.model_validate(response.json())

    def compute_items(self, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Compute sales tax and totals for invoice items without calling FBR."""

        response = self._session.post(
            f"{self.base_url}/api/invoices/items/compute", json={"items": items}
        )
        response.raise_for_status()
        return response.json()

    def validate_invoice(self, invoice: Dict[str, Any], environment: str = "sandbox") -> Any:
        """Ask FBR to validate an invoice payload."""

        response = self._session.post(
            f"{self.base_url}/api/invoices/validate",
            params={"environment": environment},
            json=invoice,
        )
        response.raise_for_status()
        return response.json()

    def submit_invoice(self, invoice: Dict[str, Any], environment: str = "sandbox") -> Any:
        """Post an invoice to FBR."""

        response = self._session.post(
            f"{self.base_url}/api/invoices/submit",
            params={"environment": environment},
            json=invoice,
        )
        response.raise_for_status()
        return response.json()

    def whoami(self) -> WhoAmI:
        return WhoAmI.model_validate(self._get("/v1/auth/whoami"))

    def version(self) -> VersionInfo:
        """Fetch the API version metadata."""

        return VersionInfo.model_validate(self._get("/v1/version"))
