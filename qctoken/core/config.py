from __future__ import annotations

import os
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PRODUCTION_ENVS = frozenset({"prod", "production"})


class BaseAppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Qianchuan Token Manager"
    ENV: str = "dev"
    DATABASE_URL: str | None = None
    JWT_SECRET: str = "change_me"
    REDIS_URL: str = "redis://localhost:6379/0"
    FRONTEND_URL: str = "http://localhost:3000"
    BACKEND_URL: str = "http://localhost:8000"
    CORS_ALLOW_ORIGINS: list[str] = ["*"]
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "plain"
    SENTRY_DSN: str | None = None

    # Oceanengine / Qianchuan OAuth endpoints (provider-defined)
    OCEANENGINE_TOKEN_URL: str = "https://ad.oceanengine.com/open_api/oauth2/access_token/"
    OCEANENGINE_REFRESH_URL: str = "https://ad.oceanengine.com/open_api/oauth2/refresh_token/"
    OCEANENGINE_AUTHORIZE_URL: str = "https://qianchuan.jinritemai.com/openapi/qc/audit/oauth.html"
    # Where the provider sends the browser back with ?auth_code=...&app_id=...
    OCEANENGINE_REDIRECT_URI: str | None = None
    OCEANENGINE_HTTP_TIMEOUT: float = 10.0

    # Token lifecycle
    TOKEN_REFRESH_BUFFER_SECONDS: int = 600
    TOKEN_SWEEP_LOOKAHEAD_HOURS: int = 24
    TOKEN_SWEEP_INTERVAL_MINUTES: int = 60
    # Lease on a credential while one process spends its refresh token
    TOKEN_REFRESH_CLAIM_SECONDS: int = 60

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() in PRODUCTION_ENVS

    @property
    def oauth_redirect_uri(self) -> str:
        return self.OCEANENGINE_REDIRECT_URI or f"{self.FRONTEND_URL.rstrip('/')}/auth/callback"

    @model_validator(mode="after")
    def _validate_required_fields(self) -> BaseAppSettings:
        # Convert Heroku's postgres:// URL to postgresql://
        if self.DATABASE_URL and self.DATABASE_URL.startswith("postgres://"):
            self.DATABASE_URL = self.DATABASE_URL.replace("postgres://", "postgresql://", 1)

        if self.TOKEN_REFRESH_BUFFER_SECONDS < 0:
            raise ValueError("TOKEN_REFRESH_BUFFER_SECONDS must not be negative")
        if self.OCEANENGINE_HTTP_TIMEOUT <= 0:
            raise ValueError("OCEANENGINE_HTTP_TIMEOUT must be positive")
        if self.TOKEN_REFRESH_CLAIM_SECONDS <= 0:
            raise ValueError("TOKEN_REFRESH_CLAIM_SECONDS must be positive")

        required_in_prod = ("DATABASE_URL", "JWT_SECRET")
        if self.is_production:
            missing = [name for name in required_in_prod if not getattr(self, name)]
            if missing:
                raise ValueError(f"Missing required production settings: {', '.join(missing)}")
            # Secrets at rest are encrypted with a key derived from JWT_SECRET
            if self.JWT_SECRET == "change_me":
                raise ValueError("Insecure default secrets in production: JWT_SECRET uses default placeholder")
        return self


class DevSettings(BaseAppSettings):
    ENV: str = "dev"
    DATABASE_URL: str = "sqlite:///./storage/dev.db"
    JWT_SECRET: str = "dev-jwt-secret"


class TestSettings(BaseAppSettings):
    ENV: str = "test"
    DATABASE_URL: str = "sqlite:///:memory:"
    JWT_SECRET: str = "test-jwt-secret"


class ProdSettings(BaseAppSettings):
    ENV: str = "prod"
    CORS_ALLOW_ORIGINS: list[str] = [
        "http://localhost:3000",  # Local development
        "http://127.0.0.1:3000",  # Local development (alt)
    ]
    LOG_FORMAT: str = "json"


_ENV_TO_SETTINGS: dict[str, type[BaseAppSettings]] = {
    "dev": DevSettings,
    "development": DevSettings,
    "test": TestSettings,
    "testing": TestSettings,
    "prod": ProdSettings,
    "production": ProdSettings,
}


@lru_cache
def get_settings() -> BaseAppSettings:
    env_name = os.getenv("APP_ENV") or os.getenv("ENV") or "dev"
    env = env_name.lower()
    settings_cls = _ENV_TO_SETTINGS.get(env, DevSettings)
    return settings_cls()


settings = get_settings()
