"""Tests for the Oceanengine OAuth client request/response handling."""
import logging
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from conftest import AUTHORIZE_URL, REDIRECT_URI, REFRESH_URL, TOKEN_URL, denied_response, token_response

from qctoken.services.oceanengine import (
    ProviderDeniedError,
    ProviderRejectedError,
    ProviderUnreachableError,
)


@pytest.mark.asyncio
async def test_exchange_posts_authorization_code_grant(oauth_client, oceanengine):
    oceanengine.queue(token_response("at-1", "rt-1", 7200))

    token_set = await oauth_client.exchange_code("app-1", "secret-1", "code-1")

    assert token_set.access_token == "at-1"
    assert token_set.refresh_token == "rt-1"
    assert token_set.expires_in == 7200
    assert oceanengine.requests == [
        {
            "url": TOKEN_URL,
            "json": {
                "app_id": "app-1",
                "secret": "secret-1",
                "grant_type": "authorization_code",
                "auth_code": "code-1",
            },
        }
    ]


@pytest.mark.asyncio
async def test_refresh_posts_refresh_token_grant(oauth_client, oceanengine):
    oceanengine.queue(token_response("at-2", "rt-2", 3600))

    token_set = await oauth_client.refresh("app-1", "secret-1", "rt-1")

    assert token_set.refresh_token == "rt-2"
    request = oceanengine.requests[0]
    assert request["url"] == REFRESH_URL
    assert request["json"] == {
        "app_id": "app-1",
        "secret": "secret-1",
        "grant_type": "refresh_token",
        "refresh_token": "rt-1",
    }


@pytest.mark.asyncio
async def test_missing_success_sentinel_is_denied(oauth_client, oceanengine):
    oceanengine.queue(denied_response("invalid_grant"))

    with pytest.raises(ProviderDeniedError) as exc_info:
        await oauth_client.exchange_code("app-1", "secret-1", "code-1")

    assert exc_info.value.provider_message == "invalid_grant"
    assert exc_info.value.kind == "provider_denied"
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_absent_message_is_denied(oauth_client, oceanengine):
    oceanengine.queue(httpx.Response(200, json={"data": {"access_token": "x"}}))

    with pytest.raises(ProviderDeniedError):
        await oauth_client.refresh("app-1", "secret-1", "rt-1")


@pytest.mark.asyncio
async def test_error_status_is_rejected(oauth_client, oceanengine):
    oceanengine.queue(httpx.Response(500, text="upstream exploded"))

    with pytest.raises(ProviderRejectedError) as exc_info:
        await oauth_client.refresh("app-1", "secret-1", "rt-1")

    assert exc_info.value.http_status == 500
    assert exc_info.value.code == "PRV201"


@pytest.mark.asyncio
async def test_non_json_body_is_rejected_not_denied(oauth_client, oceanengine):
    oceanengine.queue(httpx.Response(200, content=b"<html>maintenance</html>"))

    with pytest.raises(ProviderRejectedError, match="Invalid response format"):
        await oauth_client.refresh("app-1", "secret-1", "rt-1")


@pytest.mark.asyncio
async def test_success_without_token_fields_is_rejected(oauth_client, oceanengine):
    oceanengine.queue(httpx.Response(200, json={"message": "success", "data": {"access_token": "at"}}))

    with pytest.raises(ProviderRejectedError):
        await oauth_client.exchange_code("app-1", "secret-1", "code-1")


@pytest.mark.asyncio
async def test_connection_error_is_unreachable(oauth_client, oceanengine):
    oceanengine.queue(httpx.ConnectError("connection refused"))

    with pytest.raises(ProviderUnreachableError) as exc_info:
        await oauth_client.exchange_code("app-1", "secret-1", "code-1")

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_timeout_is_unreachable(oauth_client, oceanengine):
    oceanengine.queue(httpx.ReadTimeout("read timed out"))

    with pytest.raises(ProviderUnreachableError, match="timed out"):
        await oauth_client.refresh("app-1", "secret-1", "rt-1")


@pytest.mark.asyncio
async def test_secrets_are_not_logged(oauth_client, oceanengine, caplog):
    oceanengine.queue(token_response("at-secret-value", "rt-secret-value-0123456789"))

    with caplog.at_level(logging.DEBUG):
        await oauth_client.refresh("app-1", "app-secret-value", "rt-previous-value-0123456789")

    assert "app-secret-value" not in caplog.text
    assert "rt-previous-value-0123456789" not in caplog.text
    assert "at-secret-value" not in caplog.text


def test_authorization_url_carries_app_and_scope(oauth_client):
    url = oauth_client.get_authorization_url("app-1", state="xyz")

    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == AUTHORIZE_URL
    params = parse_qs(parsed.query)
    assert params["app_id"] == ["app-1"]
    assert params["redirect_uri"] == [REDIRECT_URI]
    assert params["state"] == ["xyz"]
    assert params["material_auth"] == ["1"]
