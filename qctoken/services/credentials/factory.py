"""Factory function for creating a configured credential service."""
from datetime import timedelta

from sqlalchemy.orm import Session

from qctoken.core.config import settings
from qctoken.services.oceanengine import OceanengineOAuthClient, create_oceanengine_client

from .service import CredentialService


def create_credential_service(
    db: Session,
    client: OceanengineOAuthClient | None = None,
) -> CredentialService:
    """
    Factory function to create a configured CredentialService.

    Args:
        db: Database session
        client: Oceanengine client; built from settings when omitted

    Returns:
        Configured CredentialService instance
    """
    return CredentialService(
        db,
        client or create_oceanengine_client(),
        buffer=timedelta(seconds=settings.TOKEN_REFRESH_BUFFER_SECONDS),
        claim_ttl=timedelta(seconds=settings.TOKEN_REFRESH_CLAIM_SECONDS),
    )
