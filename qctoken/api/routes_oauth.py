"""
Oceanengine OAuth callback routes.

Endpoints:
- POST /oauth/oceanengine/exchange - Redeem the auth_code from the provider redirect

The provider redirects the browser to the frontend with ``auth_code`` and
``app_id``; the frontend forwards both here with the caller's bearer token.
"""
import logging

from fastapi import APIRouter

from qctoken.api.dependencies import CredentialServiceDep, OwnerDep
from qctoken.models import schemas

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/oauth/oceanengine", tags=["oauth"])


@router.post("/exchange", response_model=schemas.CredentialOut)
async def exchange_authorization_code(
    data: schemas.ExchangeRequest,
    owner_id: OwnerDep,
    service: CredentialServiceDep,
) -> schemas.CredentialOut:
    """
    Exchange an authorization code for an access/refresh token pair.

    Errors:
        400 validation_error: app credentials not submitted yet
        400 provider_denied: provider answered without the success marker
        502 provider_rejected: provider returned an error status or garbage
        503 provider_unreachable: provider timed out or could not be reached
    """
    credential = await service.exchange_authorization_code(owner_id, data.app_id, data.auth_code)
    logger.info("OAuth exchange completed for owner=%s app_id=%s", owner_id, data.app_id)
    return schemas.CredentialOut.from_credential(credential, service.describe_state(credential))
