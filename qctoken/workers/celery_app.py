from __future__ import annotations

from celery import Celery

from qctoken.core.config import settings


def _create_celery() -> Celery:
    celery = Celery(
        "qctoken",
        broker=settings.REDIS_URL,
        backend=settings.REDIS_URL,
        include=["qctoken.workers.tasks"],
    )
    celery.conf.update(
        task_default_queue="default",
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_always_eager=settings.ENV.lower() in {"test"},
    )
    # Beat schedule (only active outside test env)
    if settings.ENV.lower() not in {"test"}:
        celery.conf.beat_schedule = {
            "refresh-due-credentials": {
                "task": "credentials.refresh_due",
                "schedule": settings.TOKEN_SWEEP_INTERVAL_MINUTES * 60.0,
                "args": [settings.TOKEN_SWEEP_LOOKAHEAD_HOURS],
            }
        }
    return celery


celery_app = _create_celery()
