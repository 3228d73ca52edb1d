"""Exception hierarchy for the token manager.

Every error that reaches a caller carries the same shape: a ``kind`` naming the
failure category, a stable ``code``, a human-readable ``message`` and an HTTP
status for the API layer.

Error codes follow pattern: [CATEGORY][NUMBER]
- CRD: Credential errors (100-199)
- PRV: Provider (Oceanengine) errors (200-299)
- SYS: System errors (400-499)
"""

from __future__ import annotations

from typing import Any


class TokenManagerException(Exception):
    """Base exception for all token manager errors."""

    kind = "error"

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with user-facing message and metadata.

        Args:
            message: Human-readable error detail
            code: Unique error code (e.g., "CRD100")
            status_code: HTTP status code (default: 400 Bad Request)
            details: Optional additional context
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "kind": self.kind,
                "details": self.details,
            }
        }


# ============================================================================
# CREDENTIAL ERRORS (CRD100-199)
# ============================================================================

class CredentialError(TokenManagerException):
    """Base class for credential-related errors."""
    pass


class ValidationError(CredentialError):
    """A required input or stored field is missing."""

    kind = "validation_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="CRD100",
            status_code=400,
            details=details,
        )


class NotFoundError(CredentialError):
    """Credential does not exist or belongs to another owner."""

    kind = "not_found"

    def __init__(self, credential_id: int | None = None):
        message = "Credential not found" if credential_id is None else f"Credential {credential_id} not found"
        super().__init__(
            message=message,
            code="CRD101",
            status_code=404,
            details={"credential_id": credential_id} if credential_id is not None else {},
        )


class RefreshInProgressError(CredentialError):
    """Another process kept the credential's refresh claim past the wait window."""

    kind = "refresh_in_progress"

    def __init__(self, credential_id: int):
        super().__init__(
            message=f"Credential {credential_id} is being refreshed elsewhere; retry shortly",
            code="CRD102",
            status_code=409,
            details={"credential_id": credential_id},
        )


# ============================================================================
# SYSTEM ERRORS (SYS400-499)
# ============================================================================

class SystemError(TokenManagerException):
    """Base class for system/infrastructure errors."""
    pass


class PersistenceError(SystemError):
    """Credential store read or write failed."""

    kind = "persistence_error"

    def __init__(self, operation: str, reason: str | None = None):
        message = f"Credential store {operation} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="SYS400",
            status_code=500,
            details={"operation": operation},
        )
