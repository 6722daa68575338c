"""Exception types shared by the gateway client and the reference cache."""

from __future__ import annotations

from typing import Any, Optional


class FBRError(Exception):
    """Base class for every error raised by this package."""


class RemoteUnavailable(FBRError):
    """The gateway could not be reached, timed out or returned a non-2xx status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(FBRError):
    """The gateway answered 2xx but the body is not the expected shape."""


class MissingCredential(FBRError):
    """No bearer token is configured for the requested environment."""

    def __init__(self, environment: str) -> None:
        super().__init__(f"No {environment} token available")
        self.environment = environment


class CorruptPersistedRecord(FBRError):
    """A persisted cache record could not be decoded."""


class GatewayError(FBRError):
    """The gateway rejected an invoice request with an HTTP error status."""

    def __init__(self, status_code: int, body: Any) -> None:
        super().__init__(f"FBR gateway returned HTTP {status_code}")
        self.status_code = status_code
        self.body = body
