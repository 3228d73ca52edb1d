from __future__ import annotations

from fastapi import APIRouter, HTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session

from qctoken.api.dependencies import DbDep

router = APIRouter(tags=["health"])


def _check_db(db: Session) -> bool:
    db.execute(text("SELECT 1"))
    return True


@router.get("/healthz")
async def healthz(db: DbDep) -> dict[str, str]:
    """Basic liveness probe (cheap)."""
    try:
        _check_db(db)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=503, detail="Database connectivity check failed") from exc
    return {"status": "ok"}


@router.get("/live")
async def live() -> dict[str, str]:
    """Liveness endpoint with no dependencies."""
    return {"status": "alive"}
