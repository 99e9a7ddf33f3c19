from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings

from .base import AlertStore
from .document import SCHEMA_VERSION, Collections, DocumentAlertStore
from .json_file import JsonFileAlertStore
from .kv import RedisAlertStore
from .memory import MemoryAlertStore
from .sql import SqlAlertStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> AlertStore:
    """Construct the backend named by ``settings.store_backend``."""
    backend = settings.store_backend
    if backend == "sql":
        from app.db import create_all, make_engine

        engine = make_engine(settings.database_url)
        # Dev/compose friendly; production runs the Alembic migration instead.
        try:
            create_all(engine)
        except SQLAlchemyError as exc:
            logger.warning("could not ensure alert tables: %s", exc)
        return SqlAlertStore(engine)
    if backend == "memory":
        return MemoryAlertStore(settings.store_path or None)
    if backend == "json":
        return JsonFileAlertStore(settings.store_path)
    if backend == "redis":
        return RedisAlertStore.from_url(settings.redis_url, key=settings.store_key)
    raise ValueError(f"unknown alert store backend: {backend!r}")


__all__ = [
    "AlertStore",
    "Collections",
    "DocumentAlertStore",
    "JsonFileAlertStore",
    "MemoryAlertStore",
    "RedisAlertStore",
    "SCHEMA_VERSION",
    "SqlAlertStore",
    "build_store",
]
