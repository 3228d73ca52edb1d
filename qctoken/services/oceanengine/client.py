"""Oceanengine (Qianchuan) OAuth 2.0 client.

Implements the two grants the platform supports for third-party apps:
authorization-code exchange and refresh-token renewal. Both endpoints take a
JSON body and signal success with ``{"message": "success"}`` rather than with
the HTTP status alone.
"""
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import httpx

from qctoken.core.logger import mask_secret

from .exceptions import ProviderDeniedError, ProviderRejectedError, ProviderUnreachableError

logger = logging.getLogger(__name__)

SUCCESS_SENTINEL = "success"
# Qianchuan material authorization scope, fixed for this platform
AUTHORIZE_SCOPE_PARAMS = {"material_auth": "1"}


@dataclass(frozen=True)
class TokenSet:
    """Token material returned by a successful grant."""

    access_token: str
    refresh_token: str
    expires_in: int

    def expires_at(self, now: datetime) -> datetime:
        return now + timedelta(seconds=self.expires_in)


def _code_fingerprint(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]


class OceanengineOAuthClient:
    """
    Client for the Oceanengine OAuth token endpoints.

    A single ``httpx.AsyncClient`` can be injected (tests pass one backed by
    ``httpx.MockTransport``); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        token_url: str,
        refresh_url: str,
        authorize_url: str,
        redirect_uri: str,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the client.

        Args:
            token_url: Authorization-code exchange endpoint
            refresh_url: Refresh-token endpoint
            authorize_url: Provider-hosted authorization page
            redirect_uri: Where the provider sends the browser after consent
            timeout: Upper bound in seconds for each provider call
            http_client: Optional shared async HTTP client
        """
        self.token_url = token_url
        self.refresh_url = refresh_url
        self.authorize_url = authorize_url
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._http_client = http_client

    def get_authorization_url(self, app_id: str, state: str | None = None) -> str:
        """
        Build the provider authorization page URL for ``app_id``.

        The interactive consent happens on the provider's site; the browser
        returns to ``redirect_uri`` with ``auth_code`` and ``app_id``.
        """
        params = {
            "app_id": app_id,
            "redirect_uri": self.redirect_uri,
            **AUTHORIZE_SCOPE_PARAMS,
        }
        if state:
            params["state"] = state
        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, app_id: str, app_secret: str, auth_code: str) -> TokenSet:
        """
        Exchange an authorization code for a token set.

        Raises:
            ProviderUnreachableError: Network failure or timeout
            ProviderRejectedError: Non-2xx status or malformed body
            ProviderDeniedError: Body without the success sentinel
        """
        logger.info(
            "Token exchange attempt | app_id=%s code_fp=%s",
            app_id, _code_fingerprint(auth_code),
        )
        body = {
            "app_id": app_id,
            "secret": app_secret,
            "grant_type": "authorization_code",
            "auth_code": auth_code,
        }
        response = await self._post(self.token_url, body, operation="exchange")
        token_set = self._token_set(self._check_sentinel(self._parse_json(response)))
        logger.info("Token exchange SUCCESS | app_id=%s expires_in=%s", app_id, token_set.expires_in)
        return token_set

    async def refresh(self, app_id: str, app_secret: str, refresh_token: str) -> TokenSet:
        """
        Trade a refresh token for a new access/refresh token pair.

        Raises:
            ProviderUnreachableError: Network failure or timeout
            ProviderRejectedError: Non-2xx status or malformed body
            ProviderDeniedError: Body without the success sentinel
        """
        logger.info(
            "Token refresh attempt | app_id=%s refresh_token=%s",
            app_id, mask_secret(refresh_token, visible=10),
        )
        body = {
            "app_id": app_id,
            "secret": app_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        response = await self._post(self.refresh_url, body, operation="refresh")
        token_set = self._token_set(self._check_sentinel(self._parse_json(response)))
        logger.info("Token refresh SUCCESS | app_id=%s expires_in=%s", app_id, token_set.expires_in)
        return token_set

    async def _post(self, url: str, body: dict[str, Any], operation: str) -> httpx.Response:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, json=body, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, json=body, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as e:
            logger.error("Token %s timed out after %ss", operation, self.timeout)
            raise ProviderUnreachableError(f"request timed out after {self.timeout}s") from e
        except httpx.RequestError as e:
            logger.error("Token %s request failed: %s", operation, e)
            raise ProviderUnreachableError(str(e) or e.__class__.__name__) from e

        if response.is_error:
            logger.error(
                "Token %s failed | status=%s response=%s",
                operation, response.status_code, response.text[:500],
            )
            raise ProviderRejectedError(
                f"Oceanengine rejected the request: HTTP {response.status_code}",
                http_status=response.status_code,
            )
        return response

    @staticmethod
    def _parse_json(response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            logger.error("Invalid response format from Oceanengine: %s", response.text[:200])
            raise ProviderRejectedError("Invalid response format", http_status=response.status_code) from e
        if not isinstance(payload, dict):
            raise ProviderRejectedError("Invalid response format", http_status=response.status_code)
        return payload

    @staticmethod
    def _check_sentinel(payload: dict[str, Any]) -> dict[str, Any]:
        message = payload.get("message")
        if message != SUCCESS_SENTINEL:
            detail = str(message) if message else "Oceanengine did not report success"
            logger.warning("Oceanengine denied token request | message=%s code=%s", detail, payload.get("code"))
            raise ProviderDeniedError(detail)
        return payload

    @staticmethod
    def _token_set(payload: dict[str, Any]) -> TokenSet:
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ProviderRejectedError("Invalid response format: missing data")
        try:
            token_set = TokenSet(
                access_token=str(data["access_token"]),
                refresh_token=str(data["refresh_token"]),
                expires_in=int(data["expires_in"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderRejectedError(f"Invalid response format: {e}") from e
        if not token_set.access_token or not token_set.refresh_token or token_set.expires_in <= 0:
            raise ProviderRejectedError("Invalid response format: incomplete token data")
        return token_set
