"""Database engine setup.

For test runs (ENV=test) we use a shared-cache in-memory SQLite database when
DATABASE_URL is unset or points at ``:memory:``, so logic tests need no
PostgreSQL driver.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from qctoken.core.config import settings

raw_url = settings.DATABASE_URL

use_sqlite_memory = settings.ENV.lower() == "test" and (not raw_url or raw_url.endswith(":memory:"))

if use_sqlite_memory:
    # shared cache enables multiple connections to the same in-memory db
    raw_url = "sqlite:///file:test_db?mode=memory&cache=shared&uri=true"
    engine = create_engine(raw_url, future=True, connect_args={"check_same_thread": False})
elif raw_url and raw_url.startswith("postgresql"):
    # Pool recycle: recycle connections after 1 hour to prevent stale connections
    # Pool pre-ping: verify connection health before using
    engine = create_engine(
        raw_url,
        future=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        pool_pre_ping=True,
    )
else:
    engine = create_engine(raw_url or "sqlite:///./storage/dev.db", future=True)

SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
