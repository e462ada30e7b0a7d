"""Key-value storage backends for client state.

Two lifetimes sit on top of these backends: a flow-scoped store for the
PKCE secrets and a session-scoped store for the token pair. Both are plain
string key-value stores scoped by the client identifier prefix.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """String key-value storage.

    ``set_many`` and ``delete_many`` apply all of their changes together so
    a token and its expiry are never observed half-written.
    """

    def get(self, key: str) -> str | None: ...

    def set_many(self, items: Mapping[str, str]) -> None: ...

    def delete_many(self, keys: Iterable[str]) -> None: ...


class MemoryStore:
    """In-memory store. State lives as long as the object."""

    def __init__(self, initial: Mapping[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set_many(self, items: Mapping[str, str]) -> None:
        self._data.update(items)

    def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore:
    """Persistent store backed by a single JSON file.

    Every write replaces the whole file through a temporary file and
    ``os.replace``, so concurrent readers see either the old or the new
    contents. The file is created with owner-only permissions.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set_many(self, items: Mapping[str, str]) -> None:
        data = self._read()
        data.update(items)
        self._write(data)

    def delete_many(self, keys: Iterable[str]) -> None:
        data = self._read()
        removed = False
        for key in keys:
            if key in data:
                del data[key]
                removed = True
        if removed:
            self._write(data)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to read store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Ignoring store {self.path}: not a JSON object")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".tollgate-")
        try:
            with os.fdopen(fd, "w") as tmp:
                json.dump(data, tmp, indent=2)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class ScopedStore:
    """Prefixes every key with the client identifier.

    Keys look like ``<client_id>-access_token``.
    """

    def __init__(self, backend: KeyValueStore, prefix: str):
        self._backend = backend
        self._prefix = prefix

    def key(self, name: str) -> str:
        return f"{self._prefix}{name}"

    def get(self, name: str) -> str | None:
        return self._backend.get(self.key(name))

    def set_many(self, items: Mapping[str, str]) -> None:
        self._backend.set_many({self.key(k): v for k, v in items.items()})

    def delete_many(self, names: Iterable[str]) -> None:
        self._backend.delete_many([self.key(n) for n in names])
