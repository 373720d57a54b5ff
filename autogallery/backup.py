from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import IngestError, UnsupportedType
from .store import LocalStore
from .utils import decode_data_url

log = logging.getLogger("autogallery.backup")

BACKUP_VERSION = "1.0"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

def export_full(store: LocalStore) -> Dict[str, Any]:
    images = [r.to_storage() for r in store.records]
    return {
        "version": BACKUP_VERSION,
        "exportDate": _now(),
        "images": images,
        "totalImages": len(images),
        "metadata": {"gallery": "Local Image Gallery", "created": _now()},
    }

def export_compact(store: LocalStore) -> Dict[str, Any]:
    """Names and metadata only; no payloads."""
    images = [
        {"name": r.name, "size": r.size_bytes, "type": r.mime_type, "date": r.created_at}
        for r in store.records
    ]
    return {
        "version": BACKUP_VERSION,
        "exportDate": _now(),
        "images": images,
        "totalImages": len(images),
    }

def backup_filename(compact: bool = False) -> str:
    day = datetime.now(timezone.utc).date().isoformat()
    return f"gallery-links-{day}.json" if compact else f"gallery-full-backup-{day}.json"

def import_backup(store: LocalStore, data: Dict[str, Any],
                  confirm: Optional[Callable[[int], bool]] = None
                  ) -> Tuple[int, List[IngestError]]:
    """
    Feed a full backup back through store.ingest and persist once.

    `confirm` gets the number of entries and may veto the import. Entries
    without a payload (compact exports) are rejected individually.
    Returns (imported, rejected).
    """
    images = data.get("images") if isinstance(data, dict) else None
    if not isinstance(images, list):
        raise ValueError("backup has no 'images' list")
    if confirm is not None and not confirm(len(images)):
        log.info("import cancelled")
        return 0, []

    imported, rejected = 0, []
    for entry in images:
        name = str(entry.get("name") or "") if isinstance(entry, dict) else ""
        try:
            payload = entry.get("payload") if isinstance(entry, dict) else None
            if not isinstance(payload, str):
                raise UnsupportedType(name or "<unnamed>", "entry has no embedded image")
            try:
                mime, blob = decode_data_url(payload)
            except ValueError as e:
                raise UnsupportedType(name or "<unnamed>", str(e)) from e
            store.ingest(blob, name, entry.get("mimeType") or mime)
            imported += 1
        except IngestError as e:
            log.warning(f"import skipped {e}")
            rejected.append(e)
    if imported:
        store.persist()
    log.info(f"imported {imported} images, {len(rejected)} skipped")
    return imported, rejected
