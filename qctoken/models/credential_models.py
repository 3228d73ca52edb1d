"""
Credential Storage Model.

One row per (owner, app_id): the user-supplied app identity and secret plus
the token set obtained from Oceanengine.

- app_secret, access_token and refresh_token are encrypted at rest
- access_token, refresh_token and expires_at are always written together
- expires_at NULL means the credential has never completed an exchange
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import func

from qctoken.db.base_class import Base
from qctoken.models.credential_state import CredentialState, as_utc, classify
from qctoken.utils.token_encryption import decrypt_token, encrypt_token


def _decrypt_optional(value: str | None) -> str | None:
    return decrypt_token(value) if value else None


class Credential(Base):
    """
    Oceanengine app credential and its current token set.

    Attributes:
        id: Primary key
        owner_id: Opaque identifier of the owning user (identity provider subject)
        app_id: Oceanengine application id supplied by the user
        app_secret_encrypted: Encrypted application secret
        authorization_code: Last redeemed authorization code
        access_token_encrypted: Encrypted access token
        refresh_token_encrypted: Encrypted refresh token
        expires_at: When the access token expires (NULL = never authorized)
        refresh_locked_by: Worker currently holding the refresh claim
        refresh_locked_until: When that claim lapses if never released
        created_at: When the credential was first stored
        updated_at: When the credential was last changed
    """

    __tablename__ = "credentials"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(128), nullable=False, index=True)
    app_id = Column(String(64), nullable=False)

    # Encrypted with Fernet (see qctoken.utils.token_encryption)
    app_secret_encrypted = Column(Text, nullable=False)
    authorization_code = Column(Text, nullable=True)
    access_token_encrypted = Column(Text, nullable=True)
    refresh_token_encrypted = Column(Text, nullable=True)

    expires_at = Column(DateTime(timezone=True), nullable=True)

    # Cross-process refresh claim; see CredentialService._try_claim
    refresh_locked_by = Column(String(64), nullable=True)
    refresh_locked_until = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )

    __table_args__ = (
        # One credential per user per app
        Index(
            "ix_credentials_owner_app",
            "owner_id",
            "app_id",
            unique=True,
        ),
        # Sweep selects rows by expiry
        Index("ix_credentials_expires", "expires_at"),
    )

    def __repr__(self) -> str:
        """String representation (no sensitive data)."""
        return (
            f"<Credential(id={self.id}, "
            f"owner_id={self.owner_id}, "
            f"app_id={self.app_id}, "
            f"expires_at={self.expires_at})>"
        )

    @property
    def app_secret(self) -> str | None:
        return _decrypt_optional(self.app_secret_encrypted)

    @app_secret.setter
    def app_secret(self, value: str) -> None:
        self.app_secret_encrypted = encrypt_token(value)

    @property
    def access_token(self) -> str | None:
        return _decrypt_optional(self.access_token_encrypted)

    @property
    def refresh_token(self) -> str | None:
        return _decrypt_optional(self.refresh_token_encrypted)

    @property
    def expires_at_utc(self) -> datetime | None:
        """expires_at as an aware UTC datetime (SQLite drops tzinfo)."""
        return as_utc(self.expires_at)

    def set_tokens(self, access_token: str, refresh_token: str, expires_at: datetime) -> None:
        """Write the token set as one unit."""
        if not access_token or not refresh_token or expires_at is None:
            raise ValueError("access_token, refresh_token and expires_at must all be provided")
        self.access_token_encrypted = encrypt_token(access_token)
        self.refresh_token_encrypted = encrypt_token(refresh_token)
        self.expires_at = expires_at

    def clear_tokens(self) -> None:
        """Drop the token set and the redeemed code; the credential becomes unauthorized."""
        self.authorization_code = None
        self.access_token_encrypted = None
        self.refresh_token_encrypted = None
        self.expires_at = None

    def state(self, now: datetime, buffer: timedelta) -> CredentialState:
        return classify(self.expires_at, now, buffer)

