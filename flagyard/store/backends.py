"""
Key-value persistence backends.

One scalar (JSON-serializable) value per key. Used by the cohort store and by
toggle local overrides.

Backends:
- MemoryBackend: dict in process memory
- JsonFileBackend: single JSON object on disk, atomic replace on every write
- DuckDBBackend: `kv_store` table in a DuckDB database

All backends implement two atomic compare-and-set operations within the
process, both returning the value actually stored afterwards:
- setdefault(key, value): write only if the key is absent (first writer wins)
- replace_if(key, expected, value): write only if the current value equals
  `expected` (absent counts as None)
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import duckdb

from ..config.config import StoreConfig
from ..config.constants import DEFAULT_DUCKDB_TABLE
from ..errors import StoreError


@runtime_checkable
class KeyValueBackend(Protocol):
    """Minimal persistence contract."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def setdefault(self, key: str, value: Any) -> Any: ...

    def replace_if(self, key: str, expected: Any, value: Any) -> Any: ...

    def delete(self, key: str) -> None: ...


def same_value(current: Any, expected: Any) -> bool:
    """
    Compare two stored values by their JSON encoding.

    Values re-read from disk are new objects, and NaN never equals itself,
    so plain `==` is not enough for compare-and-set.
    """
    if current is expected:
        return True
    try:
        return json.dumps(current, sort_keys=True) == json.dumps(expected, sort_keys=True)
    except (TypeError, ValueError):
        return current == expected


# =============================================================================
# Memory
# =============================================================================

class MemoryBackend:
    """Process-local backend. Values are lost on restart."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def setdefault(self, key: str, value: Any) -> Any:
        with self._lock:
            return self._data.setdefault(key, value)

    def replace_if(self, key: str, expected: Any, value: Any) -> Any:
        with self._lock:
            current = self._data.get(key)
            if not same_value(current, expected):
                return current
            self._data[key] = value
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def __repr__(self) -> str:
        return f"MemoryBackend(keys={len(self._data)})"


# =============================================================================
# JSON file
# =============================================================================

# One lock per resolved file path, shared by every JsonFileBackend instance
_PATH_LOCKS: dict[str, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _path_lock(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _PATH_LOCKS_GUARD:
        lock = _PATH_LOCKS.get(key)
        if lock is None:
            lock = _PATH_LOCKS[key] = threading.Lock()
        return lock


class JsonFileBackend:
    """
    JSON file backend.

    The file holds one JSON object. It is re-read on every access so a new
    process (or a new backend instance) sees what an earlier one persisted.
    Writes go to a temp file in the same directory followed by os.replace().
    Instances opened on the same path share one lock.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create store directory {self.path.parent}: {e}") from e
        self._lock = _path_lock(self.path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = f.read()
        except OSError as e:
            raise StoreError(f"Cannot read store file {self.path}: {e}") from e
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"Store file {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Store file {self.path} must contain a JSON object")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StoreError(f"Cannot write store file {self.path}: {e}") from e

    def get(self, key: str) -> Any:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def setdefault(self, key: str, value: Any) -> Any:
        with self._lock:
            data = self._read()
            if key in data:
                return data[key]
            data[key] = value
            self._write(data)
            return value

    def replace_if(self, key: str, expected: Any, value: Any) -> Any:
        with self._lock:
            data = self._read()
            current = data.get(key)
            if not same_value(current, expected):
                return current
            data[key] = value
            self._write(data)
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._read())

    def __repr__(self) -> str:
        return f"JsonFileBackend(path={str(self.path)!r})"


# =============================================================================
# DuckDB
# =============================================================================

class DuckDBBackend:
    """
    DuckDB backend.

    Values are stored as JSON text in a two-column table. setdefault() is an
    INSERT OR IGNORE followed by a read, so the first stored value wins.
    replace_if() is an UPDATE guarded by the value text that was compared.
    """

    def __init__(self, db_path: str | Path = ":memory:", table: str = DEFAULT_DUCKDB_TABLE):
        self.db_path = str(db_path)
        self.table = table
        self._lock = threading.Lock()

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self.conn = duckdb.connect(self.db_path)
            self._init_schema()
        except duckdb.Error as e:
            raise StoreError(f"Cannot open DuckDB store {self.db_path}: {e}") from e

    def _init_schema(self):
        """Initialize the key-value table."""
        self.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                key VARCHAR PRIMARY KEY,
                value VARCHAR NOT NULL
            )
        """)

    def _fetch_raw(self, key: str) -> str | None:
        row = self.conn.execute(
            f"SELECT value FROM {self.table} WHERE key = ?", [key]
        ).fetchone()
        return None if row is None else row[0]

    def _decode(self, key: str, raw: str | None) -> Any:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"DuckDB value for '{key}' is not valid JSON: {e}") from e

    def _fetch(self, key: str) -> Any:
        return self._decode(key, self._fetch_raw(key))

    def get(self, key: str) -> Any:
        with self._lock:
            try:
                return self._fetch(key)
            except duckdb.Error as e:
                raise StoreError(f"DuckDB read failed for '{key}': {e}") from e

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            try:
                self.conn.execute(
                    f"INSERT OR REPLACE INTO {self.table} (key, value) VALUES (?, ?)",
                    [key, json.dumps(value)],
                )
            except duckdb.Error as e:
                raise StoreError(f"DuckDB write failed for '{key}': {e}") from e

    def setdefault(self, key: str, value: Any) -> Any:
        with self._lock:
            try:
                self.conn.execute(
                    f"INSERT OR IGNORE INTO {self.table} (key, value) VALUES (?, ?)",
                    [key, json.dumps(value)],
                )
                return self._fetch(key)
            except duckdb.Error as e:
                raise StoreError(f"DuckDB write failed for '{key}': {e}") from e

    def replace_if(self, key: str, expected: Any, value: Any) -> Any:
        with self._lock:
            try:
                raw = self._fetch_raw(key)
                current = self._decode(key, raw)
                if not same_value(current, expected):
                    return current
                if raw is None:
                    self.conn.execute(
                        f"INSERT OR IGNORE INTO {self.table} (key, value) VALUES (?, ?)",
                        [key, json.dumps(value)],
                    )
                else:
                    self.conn.execute(
                        f"UPDATE {self.table} SET value = ? WHERE key = ? AND value = ?",
                        [json.dumps(value), key, raw],
                    )
                return self._fetch(key)
            except duckdb.Error as e:
                raise StoreError(f"DuckDB write failed for '{key}': {e}") from e

    def delete(self, key: str) -> None:
        with self._lock:
            try:
                self.conn.execute(f"DELETE FROM {self.table} WHERE key = ?", [key])
            except duckdb.Error as e:
                raise StoreError(f"DuckDB delete failed for '{key}': {e}") from e

    def keys(self) -> list[str]:
        with self._lock:
            try:
                rows = self.conn.execute(f"SELECT key FROM {self.table} ORDER BY key").fetchall()
            except duckdb.Error as e:
                raise StoreError(f"DuckDB key listing failed: {e}") from e
        return [r[0] for r in rows]

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def __repr__(self) -> str:
        return f"DuckDBBackend(db_path={self.db_path!r}, table={self.table!r})"


def create_backend(store: StoreConfig) -> KeyValueBackend:
    """Build the backend selected by a StoreConfig."""
    if store.backend == "json":
        return JsonFileBackend(store.path)
    if store.backend == "duckdb":
        return DuckDBBackend(store.path)
    return MemoryBackend()
