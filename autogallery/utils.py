from __future__ import annotations
import base64
import binascii
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Iterable

import icu

from .constants import COLLATION_LOCALE, PAYLOAD_MARKER


def ext(name: str) -> str:
    return PurePosixPath(name).suffix.lower().lstrip(".")

def is_image_name(name: str, allowed: Iterable[str]) -> bool:
    return bool(name) and ext(name) in allowed

def normalize_key(name: str) -> str:
    """Dedup key: the filename, trimmed and case-folded."""
    return name.strip().casefold()

def collation_key(name: str, locale: str = COLLATION_LOCALE):
    # ICU sort key, same ordering as localeCompare under that locale;
    # raw name breaks ties to keep the order total.
    return (_collator(locale).getSortKey(name), name)

@lru_cache(maxsize=None)
def _collator(locale: str):
    return icu.Collator.createInstance(icu.Locale(locale))

def sort_records(records: list, locale: str = COLLATION_LOCALE) -> list:
    """Reverse-alphabetical (Z to A) under the locale's collation. In place; returns the list."""
    records.sort(key=lambda r: collation_key(r.name, locale), reverse=True)
    return records

def fmt_size(n: int) -> str:
    try:
        n = int(n)
    except Exception:
        return "?"
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(n)
    for u in units:
        if size < 1024 or u == units[-1]:
            if u == "B": return f"{int(size)} B"
            return f"{size:.1f} {u}"
        size /= 1024.0
    return f"{n} B"

def encode_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64," + base64.b64encode(data).decode("ascii")

def decode_data_url(payload: str) -> tuple[str, bytes]:
    """Return (mime_type, bytes). Raises ValueError on anything that is not a base64 image data URL."""
    if not payload.startswith(PAYLOAD_MARKER):
        raise ValueError("not an image data URL")
    head, sep, body = payload.partition(",")
    if not sep or not head.endswith(";base64"):
        raise ValueError("data URL is not base64 encoded")
    mime = head[len("data:"):-len(";base64")]
    try:
        return mime, base64.b64decode(body, validate=True)
    except binascii.Error as e:
        raise ValueError(f"bad base64 payload: {e}") from e
