"""Bearer-token lookup for gateway calls."""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Optional, Protocol

if TYPE_CHECKING:
    from fbrinvoicing.api.tenants import Tenant


class TokenProvider(Protocol):
    def token_for(self, environment: str) -> Optional[str]: ...


class StaticTokenProvider:
    """Tokens fixed at construction, keyed by environment."""

    def __init__(self, tokens: Mapping[str, str]) -> None:
        self._tokens = {env: token for env, token in tokens.items() if token}

    def token_for(self, environment: str) -> Optional[str]:
        return self._tokens.get(environment)


class TenantTokenProvider:
    """Reads the tenant's sandbox/production tokens.

    Each environment falls back to the other tenant token, since most
    deployments issue a single token for both.
    """

    def __init__(self, tenant: "Tenant") -> None:
        self.tenant = tenant

    def token_for(self, environment: str) -> Optional[str]:
        sandbox = self.tenant.sandbox_token or None
        production = self.tenant.production_token or None
        if environment == "production":
            return production or sandbox
        return sandbox or production
