"""Database engine setup.

For test runs (ENV=test) we fall back to a shared in-memory SQLite database
when DATABASE_URL is unset or points at sqlite memory, so logic tests do not
need a PostgreSQL driver.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

raw_url = settings.DATABASE_URL

use_sqlite_memory = settings.ENV.lower() == "test" and (not raw_url or raw_url.startswith("sqlite:///:memory:"))

if use_sqlite_memory:
    # shared cache enables multiple connections to the same memory db
    raw_url = "sqlite:///file:test_db?mode=memory&cache=shared&uri=true"
    engine = create_engine(raw_url, future=True)
elif raw_url and raw_url.startswith("postgresql"):
    engine = create_engine(
        raw_url,
        future=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,
    )
else:
    connect_args = {"check_same_thread": False} if (raw_url or "").startswith("sqlite") else {}
    engine = create_engine(raw_url or "sqlite:///./storage/dev.db", future=True, connect_args=connect_args)

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
