from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator

from redis import Redis
from redis.exceptions import RedisError

from app.errors import StoreError

from .document import Collections, DocumentAlertStore

logger = logging.getLogger(__name__)

# Upper bounds for holding/waiting on the cross-process lock, in seconds.
LOCK_TIMEOUT = 10
LOCK_WAIT = 5


class RedisAlertStore(DocumentAlertStore):
    """The store document kept as a single blob in Redis.

    Mutations hold a Redis lock for the whole read-modify-write so separate
    API and worker processes never interleave on the blob.
    """

    def __init__(
        self, client: Redis, key: str = "price_alerts:data", owns_client: bool = False
    ) -> None:
        self._client = client
        self.key = key
        self._owns_client = owns_client

    @classmethod
    def from_url(cls, url: str, key: str = "price_alerts:data") -> "RedisAlertStore":
        return cls(Redis.from_url(url), key=key, owns_client=True)

    def close(self) -> None:
        # A client passed in by the caller stays the caller's to close.
        if self._owns_client:
            self._client.close()

    def _load(self) -> Collections:
        try:
            raw = self._client.get(self.key)
        except RedisError as exc:
            logger.error("redis read failed for %s: %s", self.key, exc)
            raise StoreError("key-value store unavailable") from exc
        if raw is None:
            return Collections()
        try:
            doc: Any = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise StoreError(f"corrupt store blob at {self.key}") from exc
        return Collections.from_document(doc)

    def _save(self, data: Collections) -> None:
        try:
            self._client.set(self.key, json.dumps(data.to_document()))
        except RedisError as exc:
            logger.error("redis write failed for %s: %s", self.key, exc)
            raise StoreError("key-value store unavailable") from exc

    @contextmanager
    def _read(self) -> Iterator[Collections]:
        yield self._load()

    @contextmanager
    def _write(self) -> Iterator[Collections]:
        lock = self._client.lock(
            f"{self.key}:lock", timeout=LOCK_TIMEOUT, blocking_timeout=LOCK_WAIT
        )
        try:
            acquired = lock.acquire()
        except RedisError as exc:
            raise StoreError("key-value store unavailable") from exc
        if not acquired:
            raise StoreError(f"timed out waiting for lock on {self.key}")
        try:
            data = self._load()
            yield data
            self._save(data)
        finally:
            try:
                lock.release()
            except RedisError as exc:
                # The lock expired; the write already happened.
                logger.warning("redis lock release failed for %s: %s", self.key, exc)
