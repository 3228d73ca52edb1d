from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware

from qctoken.api.routes_credentials import router as credentials_router
from qctoken.api.routes_health import router as health_router
from qctoken.api.routes_metrics import router as metrics_router
from qctoken.api.routes_oauth import router as oauth_router
from qctoken.core.config import settings
from qctoken.core.errors import register_error_handlers
from qctoken.core.logger import init_logging
from qctoken.core.monitoring import init_monitoring


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):  # type: ignore[override]
        response = await call_next(request)
        response.headers.setdefault("Referrer-Policy", "same-origin")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        # Credential responses carry access tokens
        response.headers.setdefault("Cache-Control", "no-store")
        return response


def create_app() -> FastAPI:
    init_logging()
    init_monitoring()

    # Disable interactive docs in production
    is_production = settings.is_production
    app = FastAPI(
        title=settings.APP_NAME,
        debug=False,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )
    if is_production:
        app.add_middleware(HTTPSRedirectMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    register_error_handlers(app)
    app.include_router(credentials_router)
    app.include_router(oauth_router)
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(health_router)
    return app


app = create_app()
