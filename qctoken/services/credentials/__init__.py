"""Credential storage and token lifecycle services."""
from .factory import create_credential_service
from .service import (
    REFRESH_REFRESHED,
    REFRESH_STILL_VALID,
    SUBMIT_CONFIRMATION_REQUIRED,
    SUBMIT_CREATED,
    CredentialService,
    RefreshOutcome,
    SubmitResult,
    SweepItem,
    SweepReport,
)
from .single_flight import SingleFlight, refresh_guard

__all__ = [
    "CredentialService",
    "create_credential_service",
    "SubmitResult",
    "RefreshOutcome",
    "SweepItem",
    "SweepReport",
    "SingleFlight",
    "refresh_guard",
    "SUBMIT_CREATED",
    "SUBMIT_CONFIRMATION_REQUIRED",
    "REFRESH_REFRESHED",
    "REFRESH_STILL_VALID",
]
