"""Credential lifecycle service.

Responsibilities:
- Store app credentials per owner behind the destructive-overwrite guard
- Redeem authorization codes for token sets
- Refresh token sets on demand and in batch sweeps

Token material is written only after the provider confirms success, so every
failure path leaves the stored row exactly as it was.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qctoken import metrics
from qctoken.core.exceptions import (
    NotFoundError,
    PersistenceError,
    RefreshInProgressError,
    TokenManagerException,
    ValidationError,
)
from qctoken.models.credential_models import Credential
from qctoken.models.credential_state import (
    REFRESH_BUFFER,
    SWEEP_LOOKAHEAD,
    CredentialState,
    has_live_token,
    state_after_failure,
)
from qctoken.services.oceanengine import OceanengineOAuthClient

from .single_flight import SingleFlight, refresh_guard

logger = logging.getLogger(__name__)

SUBMIT_CREATED = "created"
SUBMIT_CONFIRMATION_REQUIRED = "overwrite_confirmation_required"
REFRESH_REFRESHED = "refreshed"
REFRESH_STILL_VALID = "still_valid"

REFRESH_CLAIM_TTL = timedelta(seconds=60)
CLAIM_POLL_SECONDS = 0.25


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SubmitResult:
    status: str
    credential: Credential


@dataclass
class RefreshOutcome:
    status: str
    credential: Credential
    state: CredentialState = CredentialState.AUTHORIZED


@dataclass
class SweepItem:
    """Result of refreshing one sweep candidate."""

    credential_id: int
    success: bool
    status: str | None = None
    error: str | None = None
    error_code: str | None = None
    error_kind: str | None = None
    state: CredentialState | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.credential_id, "success": self.success}
        if self.status is not None:
            result["status"] = self.status
        if self.error is not None:
            result["error"] = self.error
            result["error_code"] = self.error_code
            result["error_kind"] = self.error_kind
        if self.state is not None:
            result["state"] = self.state.value
        return result


@dataclass
class SweepReport:
    items: list[SweepItem] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if not item.success)

    @property
    def succeeded(self) -> int:
        return self.total - self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [item.to_dict() for item in self.items],
        }


class CredentialService:
    """
    Manage Oceanengine credentials and their token lifecycle.

    Args:
        db: Database session
        client: Oceanengine OAuth client
        clock: Returns the current aware UTC time (injectable for tests)
        buffer: Refresh-eligibility window for on-demand refreshes
        guard: Single-flight guard shared by every service instance
        claim_ttl: How long a refresh claim on the row outlives a crashed holder
    """

    def __init__(
        self,
        db: Session,
        client: OceanengineOAuthClient,
        clock: Callable[[], datetime] | None = None,
        buffer: timedelta = REFRESH_BUFFER,
        guard: SingleFlight = refresh_guard,
        claim_ttl: timedelta = REFRESH_CLAIM_TTL,
    ):
        self.db = db
        self.client = client
        self._clock = clock or _utcnow
        self.buffer = buffer
        self._guard = guard
        self.claim_ttl = claim_ttl
        self.claim_poll_seconds = CLAIM_POLL_SECONDS
        self._claimant = secrets.token_hex(8)

    def _now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Storage helpers
    # ------------------------------------------------------------------

    def _commit(self, operation: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Credential store %s failed: %s", operation, e)
            raise PersistenceError(operation, str(e)) from e

    def _read_failed(self, e: SQLAlchemyError) -> PersistenceError:
        # A failed statement can leave the transaction aborted; clear it for the next caller
        self.db.rollback()
        logger.error("Credential store read failed: %s", e)
        return PersistenceError("read", str(e))

    def _find(self, owner_id: str, app_id: str) -> Credential | None:
        try:
            return self.db.scalar(
                select(Credential).where(
                    Credential.owner_id == owner_id,
                    Credential.app_id == app_id,
                )
            )
        except SQLAlchemyError as e:
            raise self._read_failed(e) from e

    def _load(self, credential_id: int, owner_id: str | None = None) -> Credential:
        try:
            credential = self.db.get(Credential, credential_id)
        except SQLAlchemyError as e:
            raise self._read_failed(e) from e
        if credential is None or (owner_id is not None and credential.owner_id != owner_id):
            raise NotFoundError(credential_id)
        return credential

    def _reload(self, credential: Credential) -> None:
        try:
            self.db.refresh(credential)
        except SQLAlchemyError as e:
            raise self._read_failed(e) from e

    @staticmethod
    def _require(value: str | None, name: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValidationError(f"{name} is required", details={"field": name})
        return value

    def _upsert(self, owner_id: str, app_id: str, app_secret: str, existing: Credential | None) -> Credential:
        credential = existing
        if credential is None:
            credential = Credential(owner_id=owner_id, app_id=app_id)
            self.db.add(credential)
        credential.app_secret = app_secret
        credential.clear_tokens()
        self._commit("upsert")
        self._reload(credential)
        return credential

    # ------------------------------------------------------------------
    # Credential submission
    # ------------------------------------------------------------------

    def submit_credential(self, owner_id: str, app_id: str, app_secret: str) -> SubmitResult:
        """
        Store app credentials, refusing to discard a live token silently.

        Returns ``overwrite_confirmation_required`` (row untouched) when the
        existing row still holds an unexpired access token; otherwise creates
        or overwrites the row in the unauthorized state.
        """
        app_id = self._require(app_id, "app_id")
        app_secret = self._require(app_secret, "app_secret")

        existing = self._find(owner_id, app_id)
        if existing is not None and has_live_token(existing.expires_at, self._now()):
            logger.info(
                "Credential submit needs confirmation | owner=%s app_id=%s credential_id=%s",
                owner_id, app_id, existing.id,
            )
            metrics.credential_submitted(SUBMIT_CONFIRMATION_REQUIRED)
            return SubmitResult(status=SUBMIT_CONFIRMATION_REQUIRED, credential=existing)

        credential = self._upsert(owner_id, app_id, app_secret, existing)
        logger.info(
            "%s credential | owner=%s app_id=%s credential_id=%s",
            "Replaced" if existing is not None else "Created",
            owner_id, app_id, credential.id,
        )
        metrics.credential_submitted(SUBMIT_CREATED)
        return SubmitResult(status=SUBMIT_CREATED, credential=credential)

    def confirm_overwrite(self, owner_id: str, app_id: str, app_secret: str) -> Credential:
        """Store app credentials unconditionally, dropping any existing token set."""
        app_id = self._require(app_id, "app_id")
        app_secret = self._require(app_secret, "app_secret")

        existing = self._find(owner_id, app_id)
        credential = self._upsert(owner_id, app_id, app_secret, existing)
        logger.warning(
            "Credential overwritten after confirmation | owner=%s app_id=%s credential_id=%s",
            owner_id, app_id, credential.id,
        )
        metrics.credential_submitted("overwrite_confirmed")
        return credential

    def get_authorization_url(self, owner_id: str, app_id: str, state: str | None = None) -> tuple[str, str]:
        """Return the provider consent URL for a stored app and the state token used."""
        app_id = self._require(app_id, "app_id")
        if self._find(owner_id, app_id) is None:
            raise ValidationError(
                "Submit the app credentials before authorizing",
                details={"app_id": app_id},
            )
        state = state or secrets.token_urlsafe(16)
        return self.client.get_authorization_url(app_id, state), state

    # ------------------------------------------------------------------
    # Exchange
    # ------------------------------------------------------------------

    async def exchange_authorization_code(self, owner_id: str, app_id: str, code: str) -> Credential:
        """
        Redeem an authorization code and persist the resulting token set.

        Raises:
            ValidationError: No stored credential (or secret) for the app, or empty code
            ProviderUnreachableError / ProviderRejectedError / ProviderDeniedError:
                The provider call failed; the row is unchanged
            PersistenceError: The token set could not be written
        """
        app_id = self._require(app_id, "app_id")
        code = self._require(code, "auth_code")

        credential = self._find(owner_id, app_id)
        if credential is None or not credential.app_secret_encrypted:
            raise ValidationError(
                "No stored app secret for this app; submit credentials first",
                details={"app_id": app_id},
            )

        async with self._guard.hold(credential.id):
            self._reload(credential)
            try:
                with metrics.provider_call_timer("exchange"):
                    token_set = await self.client.exchange_code(app_id, credential.app_secret, code)
            except TokenManagerException as e:
                metrics.token_exchanged(e.kind)
                raise

            credential.authorization_code = code
            credential.set_tokens(
                token_set.access_token,
                token_set.refresh_token,
                token_set.expires_at(self._now()),
            )
            self._commit("exchange")

        logger.info(
            "Authorization code redeemed | owner=%s app_id=%s credential_id=%s expires_at=%s",
            owner_id, app_id, credential.id, credential.expires_at_utc,
        )
        metrics.token_exchanged("success")
        return credential

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def _require_refresh_token(self, credential: Credential) -> str:
        refresh_token = credential.refresh_token
        if credential.expires_at is None or not refresh_token:
            raise ValidationError(
                "Credential has not been authorized; no refresh token stored",
                details={"credential_id": credential.id},
            )
        return refresh_token

    def _try_claim(self, credential_id: int, seen_encrypted: str) -> bool:
        """
        Take the row's refresh claim if nobody holds a live one.

        The claim only succeeds while the stored refresh token is still the one
        the caller read, so a process that lost the race never spends a token
        the provider already rotated.
        """
        now = self._now()
        stmt = (
            update(Credential)
            .where(
                Credential.id == credential_id,
                Credential.refresh_token_encrypted == seen_encrypted,
                or_(
                    Credential.refresh_locked_until.is_(None),
                    Credential.refresh_locked_until < now,
                ),
            )
            .values(
                refresh_locked_by=self._claimant,
                refresh_locked_until=now + self.claim_ttl,
                # Coordination only; the credential itself has not changed
                updated_at=Credential.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            claimed = self.db.execute(stmt).rowcount == 1
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Refresh claim failed | credential_id=%s error=%s", credential_id, e)
            raise PersistenceError("claim", str(e)) from e
        self._commit("claim")
        return claimed

    def _release_claim(self, credential_id: int) -> None:
        stmt = (
            update(Credential)
            .where(
                Credential.id == credential_id,
                Credential.refresh_locked_by == self._claimant,
            )
            .values(
                refresh_locked_by=None,
                refresh_locked_until=None,
                updated_at=Credential.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            # The claim lapses on its own after claim_ttl
            self.db.rollback()
            logger.warning("Could not release refresh claim | credential_id=%s error=%s", credential_id, e)

    async def _claim_or_wait(self, credential: Credential, seen_encrypted: str) -> bool:
        """
        Claim the refresh for this process, or wait for the current holder.

        Returns True once the claim is ours, False when another process rotated
        the refresh token while we waited.

        Raises:
            RefreshInProgressError: The other holder kept the claim past claim_ttl
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.claim_ttl.total_seconds()
        while True:
            if self._try_claim(credential.id, seen_encrypted):
                self._reload(credential)
                return True
            self._reload(credential)
            if credential.refresh_token_encrypted != seen_encrypted:
                return False
            if loop.time() >= deadline:
                raise RefreshInProgressError(credential.id)
            logger.debug("Waiting for refresh claim | credential_id=%s", credential.id)
            await asyncio.sleep(self.claim_poll_seconds)

    async def refresh_one(
        self,
        credential_id: int,
        owner_id: str | None = None,
        buffer: timedelta | None = None,
    ) -> RefreshOutcome:
        """
        Refresh one credential's token set if it is within ``buffer`` of expiry.

        Callers in this process queue on the in-memory guard; callers in other
        processes (the API and the sweep workers) queue on the row's refresh
        claim. Either way only one of them spends the refresh token and the
        rest report ``still_valid`` with the rotated tokens.

        Args:
            credential_id: Credential to refresh
            owner_id: When given, credentials of other owners are reported as missing
            buffer: Refresh-eligibility window (defaults to the service buffer)

        Returns:
            RefreshOutcome with status ``refreshed`` or ``still_valid``
        """
        buffer = self.buffer if buffer is None else buffer
        credential = self._load(credential_id, owner_id)
        self._require_refresh_token(credential)
        seen_encrypted = credential.refresh_token_encrypted

        if credential.state(self._now(), buffer) is CredentialState.AUTHORIZED:
            metrics.token_refreshed(REFRESH_STILL_VALID)
            return RefreshOutcome(status=REFRESH_STILL_VALID, credential=credential)

        if self._guard.in_flight(credential.id):
            logger.debug("Refresh already in flight; waiting | credential_id=%s", credential.id)

        async with self._guard.hold(credential.id):
            # Another holder may have refreshed (or overwritten) the row meanwhile
            self._reload(credential)
            self._require_refresh_token(credential)
            if (
                credential.refresh_token_encrypted != seen_encrypted
                or credential.state(self._now(), buffer) is CredentialState.AUTHORIZED
                or not await self._claim_or_wait(credential, seen_encrypted)
            ):
                self._require_refresh_token(credential)
                metrics.token_refreshed(REFRESH_STILL_VALID)
                return RefreshOutcome(status=REFRESH_STILL_VALID, credential=credential)

            try:
                with metrics.provider_call_timer("refresh"):
                    token_set = await self.client.refresh(
                        credential.app_id, credential.app_secret, credential.refresh_token
                    )
            except TokenManagerException as e:
                logger.warning(
                    "Token refresh failed | credential_id=%s kind=%s error=%s",
                    credential.id, e.kind, e.message,
                )
                metrics.token_refreshed(e.kind)
                self._release_claim(credential.id)
                raise

            credential.set_tokens(
                token_set.access_token,
                token_set.refresh_token,
                token_set.expires_at(self._now()),
            )
            credential.refresh_locked_by = None
            credential.refresh_locked_until = None
            try:
                self._commit("refresh")
            except PersistenceError:
                self._release_claim(credential.id)
                raise

        logger.info(
            "Token refreshed | credential_id=%s app_id=%s expires_at=%s",
            credential.id, credential.app_id, credential.expires_at_utc,
        )
        metrics.token_refreshed(REFRESH_REFRESHED)
        return RefreshOutcome(status=REFRESH_REFRESHED, credential=credential)

    async def refresh_due(self, lookahead: timedelta = SWEEP_LOOKAHEAD) -> SweepReport:
        """
        Refresh every credential expiring within ``lookahead``.

        Each candidate is refreshed independently; a failing item is recorded
        in the report and the sweep moves on. Only failing to list the
        candidates aborts the run.

        Raises:
            PersistenceError: Candidates could not be listed
        """
        cutoff = self._now() + lookahead
        try:
            candidate_ids = list(
                self.db.scalars(
                    select(Credential.id)
                    .where(
                        Credential.expires_at.is_not(None),
                        Credential.expires_at < cutoff,
                    )
                    .order_by(Credential.expires_at)
                )
            )
        except SQLAlchemyError as e:
            logger.error("Refresh sweep could not list candidates: %s", e)
            raise PersistenceError("list", str(e)) from e

        logger.info("Refresh sweep started | candidates=%s cutoff=%s", len(candidate_ids), cutoff)
        report = SweepReport()
        for credential_id in candidate_ids:
            try:
                outcome = await self.refresh_one(credential_id, buffer=lookahead)
            except TokenManagerException as e:
                report.items.append(
                    SweepItem(
                        credential_id=credential_id,
                        success=False,
                        error=e.message,
                        error_code=e.code,
                        error_kind=e.kind,
                        state=state_after_failure(e),
                    )
                )
            except Exception as e:  # noqa: BLE001 - one bad row must not abort the batch
                logger.exception("Refresh sweep item %s failed unexpectedly", credential_id)
                self.db.rollback()
                report.items.append(
                    SweepItem(
                        credential_id=credential_id,
                        success=False,
                        error=str(e) or e.__class__.__name__,
                        error_kind="error",
                        state=state_after_failure(e),
                    )
                )
            else:
                report.items.append(
                    SweepItem(
                        credential_id=credential_id,
                        success=True,
                        status=outcome.status,
                        state=outcome.state,
                    )
                )

        logger.info(
            "Refresh sweep finished | total=%s succeeded=%s failed=%s",
            report.total, report.succeeded, report.failed,
        )
        metrics.refresh_sweep_completed(report.total, report.failed)
        return report

    # ------------------------------------------------------------------
    # Listing / deletion
    # ------------------------------------------------------------------

    def list_credentials(self, owner_id: str) -> list[Credential]:
        """Owner's credentials, newest first."""
        try:
            return list(
                self.db.scalars(
                    select(Credential)
                    .where(Credential.owner_id == owner_id)
                    .order_by(Credential.created_at.desc(), Credential.id.desc())
                )
            )
        except SQLAlchemyError as e:
            raise PersistenceError("list", str(e)) from e

    def delete_credential(self, credential_id: int, owner_id: str | None = None) -> None:
        credential = self._load(credential_id, owner_id)
        self.db.delete(credential)
        self._commit("delete")
        logger.info("Deleted credential | credential_id=%s app_id=%s", credential_id, credential.app_id)

    def describe_state(self, credential: Credential) -> CredentialState:
        return credential.state(self._now(), self.buffer)
