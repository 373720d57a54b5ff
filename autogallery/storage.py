from __future__ import annotations
from pathlib import Path
import sqlite3, threading, time
from typing import Dict, Optional

from .constants import DEFAULT_QUOTA_BYTES, KV_SCHEMA
from .errors import StorageQuotaExceeded


def _nbytes(s: str) -> int:
    return len(s.encode("utf-8"))


class KeyValueStorage:
    """Durable string -> string storage with a byte quota over all values."""

    quota_bytes: int = DEFAULT_QUOTA_BYTES

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def usage_bytes(self) -> int:
        raise NotImplementedError

    def close(self):
        pass

    def _check_quota(self, key: str, value: str) -> None:
        current = self.get(key)
        required = self.usage_bytes() - (_nbytes(current) if current is not None else 0) + _nbytes(value)
        if required > self.quota_bytes:
            raise StorageQuotaExceeded(required, self.quota_bytes)


class MemoryStorage(KeyValueStorage):
    def __init__(self, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}
        self._lock = threading.RLock()

    def get(self, key):
        with self._lock:
            return self._data.get(key)

    def set(self, key, value):
        with self._lock:
            self._check_quota(key, value)
            self._data[key] = value

    def remove(self, key):
        with self._lock:
            self._data.pop(key, None)

    def usage_bytes(self):
        with self._lock:
            return sum(_nbytes(v) for v in self._data.values())


class SqliteStorage(KeyValueStorage):
    def __init__(self, db_path: Path, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        self.db_path = Path(db_path)
        self.quota_bytes = quota_bytes
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.execute("PRAGMA journal_mode=WAL;")
        self.conn.executescript(KV_SCHEMA)

    def close(self):
        with self._lock:
            self.conn.close()

    def get(self, key):
        with self._lock:
            row = self.conn.execute("SELECT value FROM kv WHERE key=?", (key,)).fetchone()
            return row[0] if row else None

    def set(self, key, value):
        with self._lock:
            self._check_quota(key, value)
            with self.conn:
                self.conn.execute(
                    "INSERT INTO kv(key,value,updated) VALUES(?,?,?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated=excluded.updated",
                    (key, value, time.time())
                )

    def remove(self, key):
        with self._lock:
            with self.conn:
                self.conn.execute("DELETE FROM kv WHERE key=?", (key,))

    def usage_bytes(self):
        with self._lock:
            # length() counts characters; sum bytes via CAST to BLOB
            row = self.conn.execute("SELECT COALESCE(SUM(length(CAST(value AS BLOB))),0) FROM kv").fetchone()
            return int(row[0])
