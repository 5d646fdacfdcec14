from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from printflow.config import settings

SQLITE_LOCK_TIMEOUT_S = 30


def build_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    # concurrent verify calls share the file database; writers wait on the lock
    options: dict = {
        "connect_args": {"check_same_thread": False, "timeout": SQLITE_LOCK_TIMEOUT_S},
    }
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    return create_engine(url, pool_pre_ping=True, **options)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=True)


def get_db() -> Iterator[Session]:
    with SessionLocal() as db:
        yield db
