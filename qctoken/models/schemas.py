"""Credential API schemas.

Responses never carry the app secret or the refresh token.
"""
from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from qctoken.models.credential_models import Credential
from qctoken.models.credential_state import CredentialState


class CredentialSubmit(BaseModel):
    """App identity and secret issued by the Oceanengine developer console."""
    app_id: str = Field(..., min_length=1, max_length=64)
    app_secret: str = Field(..., min_length=1)


class ExchangeRequest(BaseModel):
    """Authorization code forwarded from the provider redirect."""
    app_id: str = Field(..., min_length=1, max_length=64)
    auth_code: str = Field(..., min_length=1)


class CredentialOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    app_id: str
    state: CredentialState
    access_token: str | None = None
    authorization_code: str | None = None
    expires_at: dt.datetime | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @classmethod
    def from_credential(cls, credential: Credential, state: CredentialState) -> CredentialOut:
        return cls(
            id=credential.id,
            app_id=credential.app_id,
            state=state,
            access_token=credential.access_token,
            authorization_code=credential.authorization_code,
            expires_at=credential.expires_at_utc,
            created_at=credential.created_at,
            updated_at=credential.updated_at,
        )


class SubmitResultOut(BaseModel):
    status: Literal["created", "overwrite_confirmation_required"]
    credential: CredentialOut
    message: str | None = None


class RefreshResultOut(BaseModel):
    status: Literal["refreshed", "still_valid"]
    credential: CredentialOut


class AuthorizeUrlOut(BaseModel):
    url: str
    state: str


class MessageOut(BaseModel):
    detail: str
