"""Durable key/value store for client-side state.

A single JSON object on disk, keyed like browser local storage. Writes go to
a temporary file first and are moved into place with ``os.replace`` so a
crash never leaves a half-written file behind.
"""

import json
import os
import threading
from collections.abc import Callable
from eliot import log_message
from pathlib import Path
from typing import Any


class LocalStore:
    """JSON file holding versioned client records."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.RLock()

    def _read(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw) if raw.strip() else {}
        except ValueError as e:
            log_message(message_type="local_store_corrupt", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def update(self, key: str, fn: Callable[[Any], Any], default: Any = None) -> tuple[Any, Any]:
        """Atomically replace ``key`` with ``fn(current)``.

        Returns:
            Tuple of (previous value, new value)
        """
        with self._lock:
            data = self._read()
            previous = data.get(key, default)
            data[key] = fn(previous)
            self._write(data)
            return previous, data[key]
