"""Tests for credential lifecycle classification."""
from datetime import timedelta

from conftest import NOW

from qctoken.models.credential_state import (
    REFRESH_BUFFER,
    CredentialState,
    classify,
    has_live_token,
    state_after_failure,
)
from qctoken.services.oceanengine import (
    ProviderDeniedError,
    ProviderRejectedError,
    ProviderUnreachableError,
)


def test_never_exchanged_is_unauthorized():
    assert classify(None, NOW) is CredentialState.UNAUTHORIZED


def test_outside_buffer_is_authorized():
    assert classify(NOW + timedelta(minutes=11), NOW) is CredentialState.AUTHORIZED


def test_inside_buffer_is_expired():
    assert classify(NOW + timedelta(minutes=5), NOW) is CredentialState.EXPIRED


def test_exactly_at_buffer_is_expired():
    assert classify(NOW + REFRESH_BUFFER, NOW) is CredentialState.EXPIRED


def test_past_expiry_is_expired():
    assert classify(NOW - timedelta(days=1), NOW) is CredentialState.EXPIRED


def test_naive_datetimes_are_read_as_utc():
    naive = (NOW + timedelta(hours=2)).replace(tzinfo=None)
    assert classify(naive, NOW) is CredentialState.AUTHORIZED


def test_custom_buffer_widens_refresh_window():
    expires_at = NOW + timedelta(hours=2)
    assert classify(expires_at, NOW) is CredentialState.AUTHORIZED
    assert classify(expires_at, NOW, buffer=timedelta(hours=24)) is CredentialState.EXPIRED


class TestLiveToken:
    def test_future_expiry_is_live(self):
        # Still live inside the refresh buffer: overwriting would discard it
        assert has_live_token(NOW + timedelta(minutes=1), NOW) is True

    def test_past_expiry_is_not_live(self):
        assert has_live_token(NOW - timedelta(seconds=1), NOW) is False

    def test_no_expiry_is_not_live(self):
        assert has_live_token(None, NOW) is False


class TestStateAfterFailure:
    def test_denied_requires_reauthorization(self):
        assert state_after_failure(ProviderDeniedError("invalid_grant")) is CredentialState.REAUTH_REQUIRED

    def test_rejected_requires_reauthorization(self):
        error = ProviderRejectedError("bad status", http_status=401)
        assert state_after_failure(error) is CredentialState.REAUTH_REQUIRED

    def test_unreachable_stays_refreshable(self):
        assert state_after_failure(ProviderUnreachableError("timeout")) is CredentialState.EXPIRED
