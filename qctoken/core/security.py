"""Bearer token handling for the external identity provider.

The identity provider issues HS256 JWTs whose ``sub`` claim is the owner
identifier. This module only validates them; sign-in and sign-out live with
the provider.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt import ExpiredSignatureError
from jwt import InvalidTokenError as PyJWTInvalidTokenError

from qctoken.core.config import settings

ALGORITHM = "HS256"


class TokenValidationError(Exception):
    """Raised when a token cannot be validated."""


class TokenExpiredError(TokenValidationError):
    """Raised when a token is expired."""


def create_access_token(subject: str, expires_minutes: int = 60 * 24) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredError("Token has expired") from exc
    except PyJWTInvalidTokenError as exc:
        raise TokenValidationError("Token is invalid") from exc
    if not payload.get("sub"):
        raise TokenValidationError("Token has no subject")
    return payload
