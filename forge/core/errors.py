"""
Error taxonomy for the generation service.

Per-variation failures (TransientProviderOverload, ProviderRejected) are absorbed
by the fan-out stage; everything derived from UploadFailure or ValidationError
ends the whole run with a single error event.
"""

from typing import Optional


class ForgeError(Exception):
    """Base class for all service errors."""


class ValidationError(ForgeError):
    """Request rejected before any network call."""


class UploadFailure(ForgeError):
    """A reference asset could not be prepared for the provider."""

    def __init__(self, message: str, source_url: Optional[str] = None):
        super().__init__(message)
        self.source_url = source_url


class FetchFailure(UploadFailure):
    """The reference source was unreachable or answered non-2xx."""


class EncodeFailure(UploadFailure):
    """The reference bytes could not be decoded or re-encoded."""


class TransientProviderOverload(ForgeError):
    """Provider reported it is temporarily overloaded; safe to retry."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"Provider overloaded (HTTP {status_code})")
        self.status_code = status_code
        self.body = body


class ProviderRejected(ForgeError):
    """Non-retryable provider failure for a single call."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class BridgeUnavailable(ForgeError):
    """No bridge client is connected."""


class BridgeTimeout(ForgeError):
    """A correlated bridge request did not get a reply in time."""


class CatalogError(ForgeError):
    """The item catalog could not be queried."""
