"""Factory function for creating a configured Oceanengine OAuth client."""
import httpx

from qctoken.core.config import settings

from .client import OceanengineOAuthClient


def create_oceanengine_client(http_client: httpx.AsyncClient | None = None) -> OceanengineOAuthClient:
    """
    Build an OceanengineOAuthClient from application settings.

    Args:
        http_client: Optional shared async HTTP client (tests inject a mock transport)
    """
    return OceanengineOAuthClient(
        token_url=settings.OCEANENGINE_TOKEN_URL,
        refresh_url=settings.OCEANENGINE_REFRESH_URL,
        authorize_url=settings.OCEANENGINE_AUTHORIZE_URL,
        redirect_uri=settings.oauth_redirect_uri,
        timeout=settings.OCEANENGINE_HTTP_TIMEOUT,
        http_client=http_client,
    )
