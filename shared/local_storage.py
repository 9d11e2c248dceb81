"""Durable per-origin key/value store for browser-style drafts.

Mirrors the semantics of ``window.localStorage``: string keys, string
values, synchronous reads and writes, survives reloads. Every key for an
origin lives in a single JSON file so a write is one file replacement.

Usage:
    from shared.local_storage import LocalStorage
    store = LocalStorage(Path("data/local_storage.json"))
    store.set_item("regFormDraft_v1", json.dumps(snapshot))
"""

from __future__ import annotations

import json
import os
from pathlib import Path


class StorageUnavailableError(Exception):
    """The backing file cannot be read or written (quota, permissions, disk)."""


class LocalStorage:
    """String key/value store persisted to one JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            # A torn or hand-edited file behaves like an empty store
            return {}
        except OSError as e:
            raise StorageUnavailableError(str(e)) from e
        return data if isinstance(data, dict) else {}

    def _write(self, items: dict[str, str]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(items, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageUnavailableError(str(e)) from e

    def get_item(self, key: str) -> str | None:
        """Return the stored string, or None when the key is absent."""
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = str(value)
        self._write(items)

    def remove_item(self, key: str) -> None:
        """Remove *key*. Removing a missing key is a no-op."""
        items = self._load()
        if key not in items:
            return
        del items[key]
        self._write(items)

    def keys(self) -> list[str]:
        return list(self._load().keys())

    def clear(self) -> None:
        if self.path.exists():
            self._write({})
