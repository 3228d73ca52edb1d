import logging
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from qctoken.core.config import settings

logger = logging.getLogger(__name__)

# Request fields that carry credential material
_SCRUBBED_FIELDS = frozenset({"app_secret", "secret", "auth_code", "access_token", "refresh_token"})

_initialized = False


def _scrub_event(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    request = event.get("request") or {}
    data = request.get("data")
    if isinstance(data, dict):
        for key in _SCRUBBED_FIELDS.intersection(data):
            data[key] = "[Filtered]"
    headers = request.get("headers")
    if isinstance(headers, dict):
        for key in list(headers):
            if key.lower() == "authorization":
                headers[key] = "[Filtered]"
    return event


def init_monitoring() -> None:
    global _initialized
    if _initialized:
        return
    if settings.SENTRY_DSN:
        try:
            sentry_sdk.init(
                dsn=settings.SENTRY_DSN,
                integrations=[FastApiIntegration()],
                traces_sample_rate=0.1,
                profiles_sample_rate=0.0,
                environment=settings.ENV,
                release=f"qctoken@{settings.ENV}",
                send_default_pii=False,
                before_send=_scrub_event,
            )
            logger.info("Sentry initialized")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to init Sentry: %s", exc)
    _initialized = True
