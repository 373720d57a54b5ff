from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from .constants import MAX_PAYLOAD_CHARS, PAYLOAD_MARKER
from .errors import CorruptRecord
from .utils import ext, normalize_key


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class SourceCoords:
    """Where a remote gallery lives: repo + folder, plus an optional static-pages mirror."""
    owner: str
    repo: str
    folder: str = "images/"
    branch: str = "main"
    pages_url: Optional[str] = None

    @property
    def folder_path(self) -> str:
        f = self.folder.strip().strip("/")
        return f"{f}/" if f else ""

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.repo}@{self.branch}:{self.folder_path}|{self.pages_url or ''}"


@dataclass(frozen=True)
class LocalOrigin:
    payload: str  # data URL
    kind: str = field(default="local", init=False)


@dataclass(frozen=True)
class RemoteOrigin:
    url: str
    raw_url: Optional[str] = None
    pages_url: Optional[str] = None
    strategy: str = ""  # diagnostics only, never part of identity
    kind: str = field(default="remote", init=False)


Origin = Union[LocalOrigin, RemoteOrigin]


@dataclass
class ImageRecord:
    key: str
    name: str
    origin: Origin
    size_bytes: int = 0
    mime_type: Optional[str] = None
    created_at: str = field(default_factory=_now_iso)

    @classmethod
    def local(cls, name: str, payload: str, mime_type: str, size_bytes: int) -> "ImageRecord":
        return cls(
            key=normalize_key(name),
            name=name,
            origin=LocalOrigin(payload=payload),
            size_bytes=size_bytes,
            mime_type=mime_type,
        )

    @classmethod
    def remote(cls, key: str, name: str, url: str, strategy: str,
               raw_url: Optional[str] = None, pages_url: Optional[str] = None,
               size_bytes: int = 0) -> "ImageRecord":
        return cls(
            key=key,
            name=name,
            origin=RemoteOrigin(url=url, raw_url=raw_url, pages_url=pages_url, strategy=strategy),
            size_bytes=size_bytes or 0,
        )

    @property
    def extension(self) -> str:
        return ext(self.name)

    @property
    def is_local(self) -> bool:
        return isinstance(self.origin, LocalOrigin)

    @property
    def source_strategy(self) -> Optional[str]:
        return None if self.is_local else self.origin.strategy

    @property
    def display_source(self) -> str:
        """The one thing a view needs to show the image: a data URL or a remote URL."""
        return self.origin.payload if self.is_local else self.origin.url

    def validate(self) -> None:
        """Raise CorruptRecord if a local payload is not an image data URL or is over the ceiling."""
        if not self.is_local:
            return
        payload = self.origin.payload
        if not isinstance(payload, str) or not payload.startswith(PAYLOAD_MARKER):
            raise CorruptRecord(self.name, "payload is not an image data URL")
        if len(payload) > MAX_PAYLOAD_CHARS:
            raise CorruptRecord(self.name, f"payload of {len(payload)} chars is over the {MAX_PAYLOAD_CHARS} limit")

    def is_conforming(self) -> bool:
        try:
            self.validate()
        except CorruptRecord:
            return False
        return True

    # --- durable form (local snapshot) ---
    def to_storage(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "sizeBytes": self.size_bytes,
            "mimeType": self.mime_type,
            "payload": self.origin.payload,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_storage(cls, d: Dict[str, Any]) -> "ImageRecord":
        name = d["name"]
        payload = d["payload"]
        if not isinstance(name, str) or not name.strip():
            raise ValueError("record name must be a non-empty string")
        if not isinstance(payload, str):
            raise TypeError("record payload must be a string")
        return cls(
            key=normalize_key(d.get("key") or name),
            name=name,
            origin=LocalOrigin(payload=payload),
            size_bytes=int(d.get("sizeBytes") or 0),
            mime_type=d.get("mimeType"),
            created_at=d.get("createdAt") or _now_iso(),
        )

    # --- view / cache form ---
    def to_dict(self, include_payload: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "key": self.key,
            "name": self.name,
            "extension": self.extension,
            "origin": self.origin.kind,
            "sizeBytes": self.size_bytes,
            "mimeType": self.mime_type,
            "createdAt": self.created_at,
        }
        if self.is_local:
            if include_payload:
                out["payload"] = self.origin.payload
        else:
            out.update({
                "url": self.origin.url,
                "rawUrl": self.origin.raw_url,
                "pagesUrl": self.origin.pages_url,
                "sourceStrategy": self.origin.strategy,
            })
        return out

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ImageRecord":
        if d.get("origin") == "remote":
            rec = cls.remote(
                key=d["key"], name=d["name"], url=d["url"], strategy=d.get("sourceStrategy", ""),
                raw_url=d.get("rawUrl"), pages_url=d.get("pagesUrl"), size_bytes=d.get("sizeBytes") or 0,
            )
            rec.created_at = d.get("createdAt") or rec.created_at
            return rec
        return cls.from_storage(d)
