"""Key-value stores for auth material (encryption key, passcode hash, salt)."""

import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore:
    """Dict-backed store. Lost when the process exits."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set_many(self, items: Mapping[str, str]) -> None:
        self._data.update(items)

    def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)


class JsonFileKeyValueStore:
    """All entries in one JSON object on disk.

    Every change rewrites the file through a temp file and ``os.replace``, so
    a batch of entries lands together or not at all. Values are stored in
    plaintext.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, str]:
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not hold a JSON object.")
        return data

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".auth-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set_many(self, items: Mapping[str, str]) -> None:
        with self._lock:
            data = self._load()
            data.update(items)
            self._write(data)

    def delete_many(self, keys: Iterable[str]) -> None:
        with self._lock:
            data = self._load()
            removed = [key for key in keys if data.pop(key, None) is not None]
            if removed:
                self._write(data)
                logger.debug("Removed %d auth entries from %s", len(removed), self._path)
