from __future__ import annotations
import json
import logging
import sqlite3
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from .constants import CACHE_KEY, CACHE_TTL_S
from .errors import StorageQuotaExceeded
from .models import ImageRecord, SourceCoords
from .storage import KeyValueStorage

log = logging.getLogger("autogallery.cache")


class DiscoveryCache:
    """
    TTL cache of discovery snapshots keyed by SourceCoords.

    Entries expire `ttl_s` seconds after insertion. When a storage backend is
    given, entries are mirrored to it under CACHE_KEY so a restart can show the
    last snapshot immediately; failing to mirror never fails a put.
    """

    def __init__(self, ttl_s: float = CACHE_TTL_S, storage: Optional[KeyValueStorage] = None,
                 clock: Callable[[], float] = time.time):
        self.ttl_s = ttl_s
        self.storage = storage
        self.clock = clock
        self._lock = threading.RLock()
        self._entries: Dict[str, Tuple[float, List[ImageRecord]]] = {}
        if storage is not None:
            self._restore()

    def get(self, coords: SourceCoords) -> Optional[List[ImageRecord]]:
        with self._lock:
            hit = self._entries.get(coords.key)
            if hit is None:
                return None
            stamp, records = hit
            if self.clock() - stamp >= self.ttl_s:
                del self._entries[coords.key]
                return None
            return list(records)

    def put(self, coords: SourceCoords, records: List[ImageRecord]) -> None:
        with self._lock:
            self._entries[coords.key] = (self.clock(), list(records))
            self._save()

    def invalidate(self, coords: SourceCoords) -> None:
        with self._lock:
            if self._entries.pop(coords.key, None) is not None:
                self._save()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            if self.storage is not None:
                self.storage.remove(CACHE_KEY)

    def _restore(self):
        raw = self.storage.get(CACHE_KEY)
        if not raw:
            return
        try:
            data = json.loads(raw)
            for key, entry in data.items():
                records = [ImageRecord.from_dict(d) for d in entry["images"]]
                self._entries[key] = (float(entry["timestamp"]), records)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            log.warning(f"dropping unreadable discovery cache: {e}")
            self._entries.clear()
            self.storage.remove(CACHE_KEY)

    def _save(self):
        if self.storage is None:
            return
        data = {
            key: {"timestamp": stamp, "images": [r.to_dict() for r in records]}
            for key, (stamp, records) in self._entries.items()
        }
        try:
            self.storage.set(CACHE_KEY, json.dumps(data))
        except (StorageQuotaExceeded, sqlite3.Error) as e:
            log.warning(f"could not mirror discovery cache to storage: {e}")
