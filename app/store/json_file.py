from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from filelock import FileLock, Timeout

from app.errors import StoreError

from .document import Collections, DocumentAlertStore

logger = logging.getLogger(__name__)

# Seconds to wait for another process holding the document lock.
LOCK_WAIT = 5


def read_document(path: Path) -> dict[str, Any] | None:
    """Return the parsed document, or None when the file does not exist yet."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.error("store read failed for %s: %s", path, exc)
        raise StoreError(f"cannot read {path}") from exc
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.error("store document %s is not valid JSON: %s", path, exc)
        raise StoreError(f"corrupt store document {path}") from exc


def write_document(path: Path, doc: dict[str, Any]) -> None:
    """Write atomically: a crash mid-write leaves the previous document intact."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(doc, fh, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as exc:
        logger.error("store write failed for %s: %s", path, exc)
        raise StoreError(f"cannot write {path}") from exc


class JsonFileAlertStore(DocumentAlertStore):
    """Flat JSON document on disk, re-read on every operation.

    Several processes (the API and the worker) may share the file: every
    operation holds an exclusive lock on a sidecar ``<name>.lock`` file, so a
    read-modify-write never interleaves with another one.
    """

    def __init__(self, path: str | Path, lock_timeout: float = LOCK_WAIT) -> None:
        self.path = Path(path)
        self.lock_path = self.path.with_name(f"{self.path.name}.lock")
        self._lock = threading.RLock()
        self._file_lock = FileLock(str(self.lock_path), timeout=lock_timeout)
        with self._locked():
            if read_document(self.path) is None:
                write_document(self.path, Collections().to_document())
                logger.info("created new store document at %s", self.path)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._file_lock.acquire()
            except Timeout as exc:
                raise StoreError(f"timed out waiting for lock on {self.path}") from exc
            except OSError as exc:
                raise StoreError(f"cannot lock {self.path}") from exc
            try:
                yield
            finally:
                self._file_lock.release()

    def _load(self) -> Collections:
        return Collections.from_document(read_document(self.path))

    @contextmanager
    def _read(self) -> Iterator[Collections]:
        with self._locked():
            yield self._load()

    @contextmanager
    def _write(self) -> Iterator[Collections]:
        with self._locked():
            data = self._load()
            yield data
            write_document(self.path, data.to_document())
