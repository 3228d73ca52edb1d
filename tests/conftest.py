from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("APP_ENV", "test")

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from qctoken.core.config import settings  # noqa: E402
from qctoken.core.security import create_access_token  # noqa: E402
from qctoken.db import session as db_session_module  # noqa: E402
from qctoken.db.base_class import Base  # noqa: E402
from qctoken.db.session import SessionLocal  # noqa: E402
from qctoken.models.credential_models import Credential  # noqa: E402
from qctoken.services.credentials import CredentialService, SingleFlight  # noqa: E402
from qctoken.services.oceanengine import OceanengineOAuthClient  # noqa: E402

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")

TOKEN_URL = "https://oceanengine.test/open_api/oauth2/access_token/"
REFRESH_URL = "https://oceanengine.test/open_api/oauth2/refresh_token/"
AUTHORIZE_URL = "https://qianchuan.test/openapi/qc/audit/oauth.html"
REDIRECT_URI = "https://app.test/auth/callback"

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
OWNER = "owner-1"


test_engine = create_engine(
    TEST_DATABASE_URL,
    future=True,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Ensure application code uses the test engine
settings.DATABASE_URL = TEST_DATABASE_URL  # type: ignore[attr-defined]
settings.ENV = "test"  # type: ignore[attr-defined]
db_session_module.engine = test_engine  # type: ignore[assignment]
SessionLocal.configure(bind=test_engine)


@pytest.fixture(autouse=True)
def _reset_database_state():
    """Ensure each test sees a fresh database schema."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


class Clock:
    """Mutable clock handed to services instead of the wall clock."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


def token_response(
    access_token: str = "at-new",
    refresh_token: str = "rt-new",
    expires_in: int = 7200,
) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "code": 0,
            "message": "success",
            "data": {
                "access_token": access_token,
                "refresh_token": refresh_token,
                "expires_in": expires_in,
                "refresh_token_expires_in": 2592000,
            },
        },
    )


def denied_response(message: str = "invalid_grant", code: int = 40001) -> httpx.Response:
    return httpx.Response(200, json={"code": code, "message": message, "data": {}})


class FakeOceanengine:
    """Scripted stand-in for the Oceanengine token endpoints.

    Queued items are ``httpx.Response`` objects or exceptions to raise; when
    the queue is empty a default success response is returned.
    """

    def __init__(self) -> None:
        self.requests: list[dict] = []
        self.responses: list[httpx.Response | Exception] = []
        self.delay = 0.0

    def queue(self, *items: httpx.Response | Exception) -> None:
        self.responses.extend(items)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append({"url": str(request.url), "json": json.loads(request.content)})
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.responses.pop(0) if self.responses else token_response()
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def oceanengine() -> FakeOceanengine:
    return FakeOceanengine()


@pytest.fixture
def oauth_client(oceanengine) -> OceanengineOAuthClient:
    return OceanengineOAuthClient(
        token_url=TOKEN_URL,
        refresh_url=REFRESH_URL,
        authorize_url=AUTHORIZE_URL,
        redirect_uri=REDIRECT_URI,
        timeout=2.0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(oceanengine.handler)),
    )


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def service(db_session, oauth_client, clock) -> CredentialService:
    return CredentialService(db_session, oauth_client, clock=clock, guard=SingleFlight())


@pytest.fixture
def make_credential(db_session):
    """Insert a credential row directly, optionally with a token set expiring ``expires_in`` from NOW."""

    def _make(
        owner_id: str = OWNER,
        app_id: str = "app-1",
        app_secret: str = "secret-1",
        expires_in: timedelta | None = timedelta(hours=1),
        access_token: str = "at-old",
        refresh_token: str = "rt-old",
    ) -> Credential:
        credential = Credential(owner_id=owner_id, app_id=app_id)
        credential.app_secret = app_secret
        if expires_in is not None:
            credential.authorization_code = "code-old"
            credential.set_tokens(access_token, refresh_token, NOW + expires_in)
        db_session.add(credential)
        db_session.commit()
        return credential

    return _make


def auth_header(owner_id: str = OWNER) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(owner_id)}"}


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return auth_header()


# FastAPI TestClient with the provider client swapped for the scripted fake
from fastapi.testclient import TestClient  # noqa: E402

from qctoken.api.dependencies import get_oceanengine_client  # noqa: E402
from qctoken.api.main import app  # noqa: E402


@pytest.fixture
def client(oauth_client):
    app.dependency_overrides[get_oceanengine_client] = lambda: oauth_client
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
