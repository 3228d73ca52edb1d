"""
Credential management routes.

Endpoints:
- POST   /credentials                    - Submit app credentials (overwrite guard)
- POST   /credentials/confirm-overwrite  - Submit app credentials, discarding live tokens
- GET    /credentials                    - List the caller's credentials, newest first
- GET    /credentials/authorize-url      - Provider consent URL for a stored app
- POST   /credentials/{id}/refresh       - Refresh one credential's token set
- DELETE /credentials/{id}               - Delete a credential

Business logic delegated to CredentialService.
"""
import logging

from fastapi import APIRouter, Query, status

from qctoken.api.dependencies import CredentialServiceDep, OwnerDep
from qctoken.models import schemas
from qctoken.services.credentials import SUBMIT_CONFIRMATION_REQUIRED

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/credentials", tags=["credentials"])


@router.post("", response_model=schemas.SubmitResultOut)
def submit_credential(
    data: schemas.CredentialSubmit,
    owner_id: OwnerDep,
    service: CredentialServiceDep,
) -> schemas.SubmitResultOut:
    """
    Store app credentials for the caller.

    If the app already holds an unexpired access token the row is left
    untouched and ``overwrite_confirmation_required`` is returned; the client
    must then call ``/credentials/confirm-overwrite``.
    """
    result = service.submit_credential(owner_id, data.app_id, data.app_secret)
    message = None
    if result.status == SUBMIT_CONFIRMATION_REQUIRED:
        message = "This app has a valid access token. Confirm to overwrite it and re-authorize."
    return schemas.SubmitResultOut(
        status=result.status,
        credential=schemas.CredentialOut.from_credential(
            result.credential, service.describe_state(result.credential)
        ),
        message=message,
    )


@router.post("/confirm-overwrite", response_model=schemas.CredentialOut)
def confirm_overwrite(
    data: schemas.CredentialSubmit,
    owner_id: OwnerDep,
    service: CredentialServiceDep,
) -> schemas.CredentialOut:
    credential = service.confirm_overwrite(owner_id, data.app_id, data.app_secret)
    return schemas.CredentialOut.from_credential(credential, service.describe_state(credential))


@router.get("", response_model=list[schemas.CredentialOut])
def list_credentials(owner_id: OwnerDep, service: CredentialServiceDep) -> list[schemas.CredentialOut]:
    return [
        schemas.CredentialOut.from_credential(credential, service.describe_state(credential))
        for credential in service.list_credentials(owner_id)
    ]


@router.get("/authorize-url", response_model=schemas.AuthorizeUrlOut)
def authorize_url(
    owner_id: OwnerDep,
    service: CredentialServiceDep,
    app_id: str = Query(..., min_length=1, description="Stored Oceanengine app id"),
    state: str | None = Query(None, description="Opaque value echoed back by the provider"),
) -> schemas.AuthorizeUrlOut:
    """Build the provider consent URL; the provider redirects back with ``auth_code``."""
    url, used_state = service.get_authorization_url(owner_id, app_id, state)
    return schemas.AuthorizeUrlOut(url=url, state=used_state)


@router.post("/{credential_id}/refresh", response_model=schemas.RefreshResultOut)
async def refresh_credential(
    credential_id: int,
    owner_id: OwnerDep,
    service: CredentialServiceDep,
) -> schemas.RefreshResultOut:
    outcome = await service.refresh_one(credential_id, owner_id=owner_id)
    return schemas.RefreshResultOut(
        status=outcome.status,
        credential=schemas.CredentialOut.from_credential(
            outcome.credential, service.describe_state(outcome.credential)
        ),
    )


@router.delete("/{credential_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_credential(credential_id: int, owner_id: OwnerDep, service: CredentialServiceDep) -> None:
    service.delete_credential(credential_id, owner_id=owner_id)
