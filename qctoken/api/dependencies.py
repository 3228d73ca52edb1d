"""Common request dependencies: owner identity, DB session and services."""
import logging
from typing import Annotated, TypeAlias

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from qctoken.core.security import TokenExpiredError, TokenValidationError, decode_token
from qctoken.db.session import get_db
from qctoken.services.credentials import CredentialService, create_credential_service
from qctoken.services.oceanengine import OceanengineOAuthClient, create_oceanengine_client

logger = logging.getLogger(__name__)


def get_current_owner_id(authorization: str = Header(None)) -> str:
    """Resolve the owner from the identity provider's bearer token."""
    if not authorization or not authorization.lower().startswith("bearer "):
        logger.info("auth.token.parse failed: missing_token")
        raise HTTPException(status_code=401, detail="Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = decode_token(token)
    except TokenExpiredError as exc:
        logger.info("auth.token.expired")
        raise HTTPException(status_code=401, detail="Token expired") from exc
    except TokenValidationError as exc:
        logger.info("auth.token.invalid")
        raise HTTPException(status_code=401, detail="Invalid token") from exc
    return str(payload["sub"])


def get_oceanengine_client() -> OceanengineOAuthClient:
    return create_oceanengine_client()


OwnerDep: TypeAlias = Annotated[str, Depends(get_current_owner_id)]
DbDep: TypeAlias = Annotated[Session, Depends(get_db)]
OAuthClientDep: TypeAlias = Annotated[OceanengineOAuthClient, Depends(get_oceanengine_client)]


def get_credential_service(db: DbDep, client: OAuthClientDep) -> CredentialService:
    return create_credential_service(db, client)


CredentialServiceDep: TypeAlias = Annotated[CredentialService, Depends(get_credential_service)]
