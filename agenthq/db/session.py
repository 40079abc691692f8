from __future__ import annotations

import os
from typing import Generator

from fastapi import Depends
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from agenthq.config import get_database_url


def _pool_disabled() -> bool:
    # PgBouncer-style poolers often work best with client-side pooling disabled.
    return os.getenv("DB_DISABLE_SQLALCHEMY_POOL", "").strip().lower() in {"1", "true", "yes"}


def _enable_sqlite_foreign_keys(dbapi_conn, _record) -> None:
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


def make_engine(url: str) -> Engine:
    kwargs = {"future": True}
    if _pool_disabled():
        kwargs["poolclass"] = NullPool

    if make_url(url).get_backend_name() == "sqlite":
        # Sessions are handed between the event loop and worker threads.
        kwargs["connect_args"] = {"check_same_thread": False}
        eng = create_engine(url, **kwargs)
        event.listen(eng, "connect", _enable_sqlite_foreign_keys)
        return eng

    return create_engine(url, pool_pre_ping=True, **kwargs)


DATABASE_URL = get_database_url()
engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_session_factory() -> sessionmaker:
    """
    Dependency for code that opens its own short-lived sessions, such as the
    websocket endpoint, which must not hold a connection while idle.
    """
    return SessionLocal


def get_db(factory: sessionmaker = Depends(get_session_factory)) -> Generator[Session, None, None]:
    db = factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
