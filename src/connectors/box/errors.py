"""Error taxonomy for the Box portal.

Route handlers map these onto HTTP status codes; nothing here is retried.
"""

from __future__ import annotations


class BoxPortalError(Exception):
    """Base class for every error raised by the portal."""


class ConfigurationError(BoxPortalError):
    """Required credential material is missing or malformed."""


class AuthenticationError(BoxPortalError):
    """Signing, decryption or token exchange failed, or a user credential is required."""


class NotFoundCondition(BoxPortalError):
    """The upstream answered but the requested resource is not available."""


class UpstreamError(BoxPortalError):
    """Non-2xx answer from the Box API."""

    def __init__(self, message: str, status_code: int, detail: object = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail

    @property
    def forbidden(self) -> bool:
        return self.status_code == 403


class ForbiddenError(UpstreamError):
    """The upstream denied access (HTTP 403)."""

    def __init__(self, message: str, detail: object = None) -> None:
        super().__init__(message, 403, detail)
