"""Opaque key-value storage backed by one JSON file.

WHY: The session catalog is written as a single record under a single
key, the way a browser's local storage would hold it. A small key-value
interface keeps the persistence manager independent of where bytes end
up, and lets tests swap in an in-memory store.

HOW: JsonFileStorage keeps a dict of key → JSON value in one file.
set() rewrites the whole file through a temp file and os.replace() so a
crash mid-write never leaves a truncated catalog behind.

RULES:
- get() of a missing key (or a missing file) returns None
- Unreadable or non-object files raise StorageError on read
- Any serialisation or OS failure on write raises StorageError
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from transcript_editor.errors import StorageError

logger = logging.getLogger(__name__)


class KeyValueStorage:
    """Minimal interface used by SessionPersistence."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError


class MemoryStorage(KeyValueStorage):
    """Process-local storage; values are round-tripped through JSON."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError("Cannot serialise value for {}: {}".format(key, exc)) from exc


class JsonFileStorage(KeyValueStorage):
    """Key-value storage persisted to a single JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            raise StorageError("Cannot read {}: {}".format(self.path, exc)) from exc
        if not isinstance(data, dict):
            raise StorageError("{} does not contain a JSON object".format(self.path))
        return data

    def get(self, key: str) -> Optional[Any]:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        try:
            content = json.dumps(data, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError("Cannot serialise value for {}: {}".format(key, exc)) from exc

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=".{}.".format(self.path.name), dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError("Cannot write {}: {}".format(self.path, exc)) from exc

        logger.debug("Wrote key %s to %s (%d bytes)", key, self.path, len(content))
