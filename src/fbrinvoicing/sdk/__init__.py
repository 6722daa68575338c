"""Python SDK for the fbr-invoicing API."""

from .client import FBRClient, FBRConfig

__all__ = ["FBRClient", "FBRConfig"]
