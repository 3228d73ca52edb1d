"""Tests for bearer token validation and settings checks."""
import jwt
import pytest
from pydantic import ValidationError as SettingsValidationError

from qctoken.core import config
from qctoken.core.security import (
    ALGORITHM,
    TokenExpiredError,
    TokenValidationError,
    create_access_token,
    decode_token,
)


class TestTokens:
    def test_access_token_roundtrip(self):
        token = create_access_token("owner-42")
        payload = decode_token(token)
        assert payload["sub"] == "owner-42"

    def test_expired_token_raises(self):
        token = create_access_token("owner-1", expires_minutes=-1)
        with pytest.raises(TokenExpiredError, match="expired"):
            decode_token(token)

    def test_invalid_token_raises(self):
        with pytest.raises(TokenValidationError, match="invalid"):
            decode_token("not.a.real.token")

    def test_foreign_signature_raises(self):
        token = jwt.encode({"sub": "owner-1"}, "some-other-secret", algorithm=ALGORITHM)
        with pytest.raises(TokenValidationError):
            decode_token(token)

    def test_token_without_subject_raises(self):
        from qctoken.core.config import settings

        token = jwt.encode({"scope": "x"}, settings.JWT_SECRET, algorithm=ALGORITHM)
        with pytest.raises(TokenValidationError, match="no subject"):
            decode_token(token)


class TestSettingsValidation:
    def test_prod_rejects_placeholder_secret(self):
        with pytest.raises(SettingsValidationError, match="JWT_SECRET"):
            config.ProdSettings(DATABASE_URL="postgresql://db/qctoken", JWT_SECRET="change_me")

    def test_prod_requires_database_url(self):
        with pytest.raises(SettingsValidationError, match="DATABASE_URL"):
            config.ProdSettings(DATABASE_URL=None, JWT_SECRET="a-real-secret")

    def test_heroku_postgres_url_is_normalized(self):
        settings = config.TestSettings(DATABASE_URL="postgres://user:pw@db/qctoken")
        assert settings.DATABASE_URL == "postgresql://user:pw@db/qctoken"

    def test_redirect_uri_defaults_to_frontend_callback(self):
        settings = config.TestSettings(FRONTEND_URL="https://app.example.com/", OCEANENGINE_REDIRECT_URI=None)
        assert settings.oauth_redirect_uri == "https://app.example.com/auth/callback"

    def test_non_positive_timeout_is_rejected(self):
        with pytest.raises(SettingsValidationError):
            config.TestSettings(OCEANENGINE_HTTP_TIMEOUT=0)

    def test_production_alias_enforces_production_guards(self):
        with pytest.raises(SettingsValidationError, match="JWT_SECRET"):
            config.ProdSettings(ENV="production", DATABASE_URL="postgresql://db/qctoken", JWT_SECRET="change_me")

    def test_production_alias_counts_as_production(self):
        settings = config.ProdSettings(ENV="production", DATABASE_URL="postgresql://db/qctoken", JWT_SECRET="a-real-secret")
        assert settings.is_production
        assert not config.TestSettings().is_production

    def test_non_positive_claim_window_is_rejected(self):
        with pytest.raises(SettingsValidationError):
            config.TestSettings(TOKEN_REFRESH_CLAIM_SECONDS=0)
