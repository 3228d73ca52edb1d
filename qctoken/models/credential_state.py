"""Credential lifecycle states.

A stored credential is classified purely from ``expires_at`` and the clock:

    UNAUTHORIZED --exchange ok--> AUTHORIZED --time passes--> EXPIRED
    EXPIRED --refresh ok--> AUTHORIZED
    EXPIRED --refresh denied--> REAUTH_REQUIRED (row untouched, user must re-authorize)

``REAUTH_REQUIRED`` is never derived from a row: failed refreshes do not write
to the store, so it only appears in refresh outcomes and sweep reports.
"""
from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone

from qctoken.services.oceanengine.exceptions import ProviderDeniedError, ProviderRejectedError

REFRESH_BUFFER = timedelta(minutes=10)
SWEEP_LOOKAHEAD = timedelta(hours=24)


class CredentialState(str, enum.Enum):
    UNAUTHORIZED = "unauthorized"
    AUTHORIZED = "authorized"
    EXPIRED = "expired"
    REAUTH_REQUIRED = "reauth_required"


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the store."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def classify(
    expires_at: datetime | None,
    now: datetime,
    buffer: timedelta = REFRESH_BUFFER,
) -> CredentialState:
    """Return the lifecycle state of a credential expiring at ``expires_at``."""
    expires_at = as_utc(expires_at)
    if expires_at is None:
        return CredentialState.UNAUTHORIZED
    if expires_at - as_utc(now) > buffer:
        return CredentialState.AUTHORIZED
    return CredentialState.EXPIRED


def has_live_token(expires_at: datetime | None, now: datetime) -> bool:
    """True while the stored access token is still usable (overwrite guard)."""
    expires_at = as_utc(expires_at)
    return expires_at is not None and expires_at > as_utc(now)


def state_after_failure(error: Exception) -> CredentialState:
    """State a credential is left in after a failed refresh.

    A provider denial or rejection (e.g. a revoked refresh token) forces
    re-authorization; outages and timeouts leave the credential refreshable
    on the next attempt.
    """
    if isinstance(error, (ProviderDeniedError, ProviderRejectedError)):
        return CredentialState.REAUTH_REQUIRED
    return CredentialState.EXPIRED
