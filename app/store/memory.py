from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .document import Collections, DocumentAlertStore
from .json_file import read_document, write_document

logger = logging.getLogger(__name__)


class MemoryAlertStore(DocumentAlertStore):
    """In-process maps, optionally mirrored to a JSON snapshot file.

    With a snapshot path the state is loaded once at construction (or on
    ``reload``) and the snapshot is rewritten after every mutation. Mutations
    are staged on a copy that replaces the live state only once the snapshot
    is written, and reads hand out copies, so callers never share records with
    the store.
    """

    def __init__(self, snapshot_path: str | Path | None = None) -> None:
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._lock = threading.RLock()
        self._data = Collections()
        self.reload()

    def reload(self) -> None:
        if self.snapshot_path is None:
            return
        with self._lock:
            self._data = Collections.from_document(read_document(self.snapshot_path))
            logger.info(
                "loaded %d alerts from snapshot %s", len(self._data.alerts), self.snapshot_path
            )

    @contextmanager
    def _read(self) -> Iterator[Collections]:
        with self._lock:
            yield self._data.copy()

    @contextmanager
    def _write(self) -> Iterator[Collections]:
        with self._lock:
            staged = self._data.copy()
            yield staged
            if self.snapshot_path is not None:
                write_document(self.snapshot_path, staged.to_document())
            self._data = staged.copy()
