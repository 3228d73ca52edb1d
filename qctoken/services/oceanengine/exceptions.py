"""Oceanengine OAuth provider exceptions.

Each stage of a token request fails with its own error kind:
network/timeout -> unreachable, non-2xx or unparseable body -> rejected,
well-formed body without the success sentinel -> denied.
"""
from __future__ import annotations

from qctoken.core.exceptions import TokenManagerException


class ProviderError(TokenManagerException):
    """Raised when communication with the OAuth provider fails."""


class ProviderUnreachableError(ProviderError):
    """Provider could not be reached (connection error or timeout)."""

    kind = "provider_unreachable"

    def __init__(self, reason: str):
        super().__init__(
            message=f"Could not reach Oceanengine: {reason}",
            code="PRV200",
            status_code=503,
            details={"retryable": True},
        )


class ProviderRejectedError(ProviderError):
    """Provider answered with a non-2xx status or an unusable body."""

    kind = "provider_rejected"

    def __init__(self, message: str, http_status: int | None = None):
        details: dict = {}
        if http_status is not None:
            details["http_status"] = http_status
        super().__init__(
            message=message,
            code="PRV201",
            status_code=502,
            details=details,
        )
        self.http_status = http_status


class ProviderDeniedError(ProviderError):
    """Provider answered well-formed JSON without the success sentinel."""

    kind = "provider_denied"

    def __init__(self, provider_message: str):
        super().__init__(
            message=provider_message,
            code="PRV202",
            status_code=400,
            details={"provider_message": provider_message},
        )
        self.provider_message = provider_message
