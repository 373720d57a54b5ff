# autogallery/store.py
from __future__ import annotations
import io
import json
import logging
import mimetypes
import threading
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Optional, Tuple, Union

from .constants import (
    ALLOWED_UPLOAD_EXTS, COLLATION_LOCALE, HEALTH_FAIR_PCT, HEALTH_WARNING_PCT, MAX_UPLOAD_BYTES,
    STORAGE_KEY,
)
from .errors import CorruptRecord, IngestError, RecordNotFound, StorageQuotaExceeded, TooLarge, UnsupportedType
from .models import ImageRecord
from .storage import KeyValueStorage
from .utils import encode_data_url, ext, fmt_size, normalize_key, sort_records

log = logging.getLogger("autogallery.store")

# What ingest accepts as file contents
Source = Union[bytes, bytearray, BinaryIO, Path]

mimetypes.add_type("image/webp", ".webp")
mimetypes.add_type("image/svg+xml", ".svg")


def _declared_size(source: Source) -> int:
    """Size of `source` without reading its contents."""
    if isinstance(source, (bytes, bytearray)):
        return len(source)
    if isinstance(source, Path):
        return source.stat().st_size
    pos = source.tell()
    source.seek(0, io.SEEK_END)
    end = source.tell()
    source.seek(pos)
    return end - pos

def _read(source: Source) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, Path):
        return source.read_bytes()
    return source.read()


class LocalStore:
    """
    The user's uploaded images, one record per normalized filename.

    Lifecycle: construct -> load() -> ingest/delete/clear/repair -> close().
    ingest() only changes memory; call persist() once after a batch. Records
    that fail validation (bad marker, oversized payload) stay hidden from
    `records` until repair() removes them.
    """

    def __init__(self, storage: KeyValueStorage, storage_key: str = STORAGE_KEY,
                 max_upload_bytes: int = MAX_UPLOAD_BYTES,
                 collation_locale: str = COLLATION_LOCALE):
        self.storage = storage
        self.storage_key = storage_key
        self.max_upload_bytes = max_upload_bytes
        self.collation_locale = collation_locale
        self._records: List[ImageRecord] = []
        self._lock = threading.RLock()

    # ---------- reads ----------
    @property
    def records(self) -> List[ImageRecord]:
        with self._lock:
            return [r for r in self._records if r.is_conforming()]

    def get(self, key: str) -> ImageRecord:
        norm = normalize_key(key)
        with self._lock:
            for r in self._records:
                if r.key == norm and r.is_conforming():
                    return r
        raise RecordNotFound(key)

    def __len__(self):
        return len(self.records)

    def total_size(self) -> int:
        return sum(r.size_bytes for r in self.records)

    # ---------- persistence ----------
    def _serialize(self) -> str:
        return json.dumps([r.to_storage() for r in self._records])

    def load(self) -> List[ImageRecord]:
        with self._lock:
            raw = self.storage.get(self.storage_key)
            if raw is None:
                self._records = []
                return []
            try:
                data = json.loads(raw)
                if not isinstance(data, list):
                    raise TypeError(f"snapshot is a {type(data).__name__}, expected a list")
                loaded = [ImageRecord.from_storage(d) for d in data]
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                log.warning(f"stored gallery is corrupt ({e}); resetting to empty")
                self._records = []
                self.persist()
                return []
            by_key: Dict[str, ImageRecord] = {}
            for r in loaded:
                by_key[r.key] = r  # last write wins
            self._records = sort_records(list(by_key.values()), self.collation_locale)
            log.info(f"loaded {len(self._records)} records")
            return self.records

    def persist(self) -> None:
        """Write the whole snapshot. Raises StorageQuotaExceeded; memory is left as is."""
        with self._lock:
            try:
                self.storage.set(self.storage_key, self._serialize())
            except StorageQuotaExceeded as e:
                log.error(f"persist failed: {e}")
                raise

    # ---------- mutations ----------
    def check(self, name: str, mime_type: Optional[str], size_bytes: int) -> str:
        """Validate an upload by its metadata alone. Returns the mime type to store."""
        if not name or not name.strip():
            raise UnsupportedType(name or "<unnamed>", "missing filename")
        e = ext(name)
        if e not in ALLOWED_UPLOAD_EXTS:
            raise UnsupportedType(name, f"extension .{e or '?'} not allowed")
        mime = mime_type or mimetypes.guess_type(name)[0]
        if not mime or not mime.lower().startswith("image/"):
            raise UnsupportedType(name, f"type {mime or 'unknown'} is not an image")
        if size_bytes > self.max_upload_bytes:
            raise TooLarge(name, f"{size_bytes} bytes exceeds the {self.max_upload_bytes} byte limit")
        return mime.lower()

    def ingest(self, source: Source, name: str, mime_type: Optional[str] = None,
               size_bytes: Optional[int] = None) -> ImageRecord:
        """
        Add one file, or replace the record with the same normalized name.
        Rejections (UnsupportedType, TooLarge) happen before the contents are read.
        """
        if size_bytes is None:
            size_bytes = _declared_size(source)
        mime = self.check(name, mime_type, size_bytes)
        data = _read(source)
        if len(data) > self.max_upload_bytes:
            raise TooLarge(name, f"{len(data)} bytes exceeds the {self.max_upload_bytes} byte limit")

        rec = ImageRecord.local(name.strip(), encode_data_url(data, mime), mime, len(data))
        with self._lock:
            for i, existing in enumerate(self._records):
                if existing.key == rec.key:
                    self._records[i] = rec
                    log.info(f"replaced {existing.name} with {rec.name} ({fmt_size(len(data))})")
                    break
            else:
                self._records.append(rec)
                log.info(f"added {rec.name} ({fmt_size(len(data))})")
            sort_records(self._records, self.collation_locale)
        return rec

    def ingest_many(self, files: Iterable[Tuple[Source, str, Optional[str]]]
                    ) -> Tuple[List[ImageRecord], List[IngestError]]:
        """Ingest a batch; a rejected file is reported and skipped, never fatal."""
        added, rejected = [], []
        for source, name, mime in files:
            try:
                added.append(self.ingest(source, name, mime))
            except IngestError as e:
                log.warning(f"rejected upload {e}")
                rejected.append(e)
        return added, rejected

    def delete(self, key: str) -> None:
        norm = normalize_key(key)
        with self._lock:
            for i, r in enumerate(self._records):
                if r.key == norm:
                    del self._records[i]
                    break
            else:
                raise RecordNotFound(key)
            self.persist()
        log.info(f"deleted {norm}")

    def clear(self) -> None:
        with self._lock:
            self._records = []
            self.storage.remove(self.storage_key)
        log.info("gallery cleared")

    def repair(self) -> int:
        """Drop records whose payload is not an image data URL or is over the ceiling."""
        with self._lock:
            keep = []
            for r in self._records:
                try:
                    r.validate()
                except CorruptRecord as e:
                    log.warning(f"repair: removing corrupt record {e}")
                    continue
                keep.append(r)
            removed = len(self._records) - len(keep)
            if removed:
                self._records = keep
                self.persist()
            return removed

    def health_check(self) -> dict:
        with self._lock:
            size = len(self._serialize().encode("utf-8"))
            count = len(self._records)
        quota = self.storage.quota_bytes
        percent = (size / quota * 100.0) if quota else 100.0
        if percent >= HEALTH_WARNING_PCT:
            status = "warning"
        elif percent >= HEALTH_FAIR_PCT:
            status = "fair"
        else:
            status = "good"
        return {"sizeBytes": size, "itemCount": count, "percent": round(percent, 1), "status": status}

    def close(self):
        self.storage.close()
