"""
Document store persisted to a single JSON file, used by the CLI.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List

from filelock import FileLock, Timeout

from ..domain.exceptions import PersistenceError
from .memory_store import InMemoryStore

logger = logging.getLogger(__name__)


class JsonFileStore(InMemoryStore):
    """
    ``InMemoryStore`` backed by a JSON file shared between processes.

    Every access runs under an exclusive lock on ``<path>.lock`` and starts
    from the current file contents, so a write never replaces documents
    another process stored in the meantime.

    File layout: ``{"<collection>": [<document>, ...], ...}``.
    """

    def __init__(self, path: Path, lock_timeout: float = 10.0):
        self.path = Path(path)
        self._file_lock = FileLock(f"{self.path}.lock", timeout=lock_timeout)
        self._depth = 0
        super().__init__(self._load())

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """
        Hold the file lock and work on the current file contents.

        Nested calls reuse the lock taken by the outermost one; only the
        outermost call reloads the file.
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._acquire_file_lock()
            self._depth += 1
            try:
                if outermost:
                    self._reload()
                yield
            finally:
                self._depth -= 1
                if outermost:
                    self._file_lock.release()

    def _acquire_file_lock(self) -> None:
        try:
            self.path.resolve().parent.mkdir(parents=True, exist_ok=True)
            self._file_lock.acquire()
        except Timeout as exc:
            raise PersistenceError(f"Store file {self.path} is locked by another process") from exc
        except OSError as exc:
            raise PersistenceError(f"Could not lock store file {self.path}: {exc}") from exc

    def _reload(self) -> None:
        raw = self._load()
        collections = self._normalize(raw)
        if any("_id" not in doc for documents in raw.values() for doc in documents):
            # Ids must stay stable across reloads
            self._commit(collections)
        self._collections = collections

    def _load(self) -> Dict[str, List[Dict[str, Any]]]:
        if not self.path.exists():
            logger.debug("Store file %s does not exist yet, starting empty", self.path)
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Store file {self.path} is not valid JSON: {exc}") from exc
        except OSError as exc:
            raise PersistenceError(f"Could not read store file {self.path}: {exc}") from exc

        if not isinstance(data, dict) or not all(
            isinstance(documents, list) and all(isinstance(doc, dict) for doc in documents)
            for documents in data.values()
        ):
            raise PersistenceError(f"Store file {self.path} must map collection names to lists of objects")

        return data

    def _commit(self, collections: Dict[str, List[Dict[str, Any]]]) -> None:
        folder = self.path.resolve().parent
        try:
            folder.mkdir(parents=True, exist_ok=True)
            # Atomic write
            with tempfile.NamedTemporaryFile(
                "w", delete=False, encoding="utf-8", dir=folder, suffix=".tmp"
            ) as tf:
                json.dump(collections, tf, ensure_ascii=False, indent=2)
                tmp_name = tf.name
            os.replace(tmp_name, self.path)
        except OSError as exc:
            raise PersistenceError(f"Could not write store file {self.path}: {exc}") from exc
