from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base


def make_engine(url: str) -> Engine:
    """Build an Engine for the SQL alert store.

    SQLite connections are shared across the API threadpool and the evaluator,
    so the same-thread check is disabled for file databases.
    """
    connect_args: dict[str, object] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False)


def create_all(engine: Engine) -> None:
    """Create all tables using SQLAlchemy metadata (useful for tests/dev)."""
    Base.metadata.create_all(bind=engine)
