"""fbr-invoicing - multi-tenant FBR digital invoicing service."""

from .errors import FBRError, GatewayError, MalformedResponse, MissingCredential, RemoteUnavailable

__version__ = "0.1.0"

__all__ = [
    "FBRError",
    "GatewayError",
    "MalformedResponse",
    "MissingCredential",
    "RemoteUnavailable",
    "__version__",
]
