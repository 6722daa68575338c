"""Async client for the FBR digital-invoicing gateway.

Usage::

    client = FBRGatewayClient(StaticTokenProvider({"sandbox": token}))
    provinces = await client.fetch_reference(ReferenceKind.PROVINCES, None, "sandbox")
    result = await client.validate_invoice(invoice_payload, "sandbox")
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from fbrinvoicing.config import DEFAULT_BASE_URL
from fbrinvoicing.errors import GatewayError, MalformedResponse, MissingCredential, RemoteUnavailable
from fbrinvoicing.gateway.tokens import TokenProvider
from fbrinvoicing.observability import redact_token
from fbrinvoicing.refdata.entries import ReferenceKind

logger = logging.getLogger(__name__)

VALIDATE_INVOICE_PATH = "pdi/v1/di_data/v1/di/validateinvoicedata"
SUBMIT_INVOICE_PATH = "pdi/v1/di_data/v1/di/postinvoicedata"


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class FBRGatewayClient:
    """Talks to the gateway with the bearer token of one credential scope."""

    def __init__(
        self,
        token_provider: TokenProvider,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.token_provider = token_provider
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "FBRGatewayClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _auth_headers(self, environment: str) -> Dict[str, str]:
        token = self.token_provider.token_for(environment)
        if not token:
            raise MissingCredential(environment)
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        environment: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        json: Any = None,
    ) -> httpx.Response:
        headers = self._auth_headers(environment)
        url = f"{self.base_url}/{path}"
        logger.debug(
            "FBR %s %s (%s, token %s)",
            method,
            path,
            environment,
            redact_token(headers["Authorization"][len("Bearer "):]),
        )
        try:
            return await self._client.request(method, url, headers=headers, params=params, json=json)
        except httpx.TimeoutException as exc:
            raise RemoteUnavailable(f"FBR {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"FBR {path} request failed: {exc}") from exc

    async def fetch_reference(
        self, kind: ReferenceKind, key: Optional[str], environment: str = "sandbox"
    ) -> Any:
        """Return the decoded body of a reference-data endpoint."""
        response = await self._request(
            "GET", kind.gateway_path, environment, params=kind.gateway_params(key) or None
        )
        if response.status_code >= 400:
            raise RemoteUnavailable(
                f"FBR {kind.gateway_path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponse(f"FBR {kind.gateway_path} returned a non-JSON body") from exc

    async def validate_invoice(self, payload: Mapping[str, Any], environment: str = "sandbox") -> Any:
        return await self._post_invoice(VALIDATE_INVOICE_PATH, payload, environment)

    async def submit_invoice(self, payload: Mapping[str, Any], environment: str = "sandbox") -> Any:
        return await self._post_invoice(SUBMIT_INVOICE_PATH, payload, environment)

    async def _post_invoice(self, path: str, payload: Mapping[str, Any], environment: str) -> Any:
        response = await self._request("POST", path, environment, json=dict(payload))
        body = _decode_body(response)
        if response.status_code >= 400:
            logger.warning("FBR %s rejected the invoice with HTTP %d", path, response.status_code)
            raise GatewayError(response.status_code, body)
        if isinstance(body, dict) and "validationResponse" not in body:
            logger.warning("FBR %s response has no validationResponse field", path)
        return body
