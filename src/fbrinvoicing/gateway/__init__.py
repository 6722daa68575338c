"""FBR gateway access."""

from fbrinvoicing.gateway.client import FBRGatewayClient
from fbrinvoicing.gateway.tokens import StaticTokenProvider, TenantTokenProvider, TokenProvider

__all__ = ["FBRGatewayClient", "StaticTokenProvider", "TenantTokenProvider", "TokenProvider"]
