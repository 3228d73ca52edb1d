"""
Credential Tasks.

Celery task for the periodic token refresh sweep.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any

from qctoken.db.session import session_scope
from qctoken.services.credentials import create_credential_service
from qctoken.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


def run_refresh_sweep(lookahead_hours: float) -> dict[str, Any]:
    """Run one sweep in a fresh session and return the report as a dict."""
    with session_scope() as db:
        service = create_credential_service(db)
        report = asyncio.run(service.refresh_due(timedelta(hours=lookahead_hours)))
    return report.to_dict()


# No autoretry: the sweep is a best-effort pass and the next beat run picks up
# whatever failed.
@celery_app.task(name="credentials.refresh_due")
def refresh_due_credentials(lookahead_hours: float = 24) -> dict[str, Any]:
    """Refresh every credential expiring within ``lookahead_hours``."""
    logger.info("[credentials.refresh_due] start lookahead_hours=%s", lookahead_hours)
    result = run_refresh_sweep(lookahead_hours)
    logger.info(
        "[credentials.refresh_due] done total=%s succeeded=%s failed=%s",
        result["total"], result["succeeded"], result["failed"],
    )
    return result
