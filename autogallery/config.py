from dataclasses import dataclass, field
from pathlib import Path
import os
import yaml
from typing import Optional, List

from .constants import (
    CACHE_TTL_S, CANDIDATE_LIMIT, COLLATION_LOCALE, DEFAULT_QUOTA_BYTES, MANIFEST_NAMES,
    MAX_IMAGES, MAX_UPLOAD_BYTES, PROBE_TIMEOUT_S, STORAGE_KEY,
)
from .models import SourceCoords

@dataclass
class RemoteCfg:
    owner: str = ""
    repo: str = ""
    branch: str = "main"
    folder: str = "images/"
    pages_url: Optional[str] = None
    api_base: str = "https://api.github.com"
    raw_base: str = "https://raw.githubusercontent.com"
    web_base: str = "https://github.com"
    manifest_names: List[str] = field(default_factory=lambda: list(MANIFEST_NAMES))
    max_images: int = MAX_IMAGES
    candidate_limit: int = CANDIDATE_LIMIT
    probe_timeout_s: float = PROBE_TIMEOUT_S
    probe_workers: int = 1       # 1 = strictly sequential
    cache_ttl_s: float = CACHE_TTL_S
    api_token_env: Optional[str] = None
    collation_locale: str = COLLATION_LOCALE   # ICU locale for Z->A ordering

    def coords(self) -> SourceCoords:
        return SourceCoords(
            owner=self.owner, repo=self.repo, folder=self.folder,
            branch=self.branch, pages_url=self.pages_url,
        )

    def api_token(self) -> Optional[str]:
        if not self.api_token_env:
            return None
        return os.environ.get(self.api_token_env) or None

@dataclass
class StoreCfg:
    db: Path = Path("state/autogallery.db")
    storage_key: str = STORAGE_KEY
    quota_bytes: int = DEFAULT_QUOTA_BYTES
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    collation_locale: str = COLLATION_LOCALE

@dataclass
class ServerCfg:
    host: str = "0.0.0.0"
    port: int = 8765

@dataclass
class LoggingCfg:
    level: str = "INFO"

@dataclass
class AppCfg:
    mode: str = "local"          # "local" | "remote"
    remote: RemoteCfg = field(default_factory=RemoteCfg)
    store: StoreCfg = field(default_factory=StoreCfg)
    server: ServerCfg = field(default_factory=ServerCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)

    @staticmethod
    def load(path: Path) -> "AppCfg":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return AppCfg.from_dict(data)

    @staticmethod
    def from_dict(data: dict) -> "AppCfg":
        mode = str(data.get("mode", "local")).lower()
        if mode not in ("local", "remote"):
            raise ValueError("mode must be 'local' or 'remote'")

        # remote
        r = dict(data.get("remote") or {})
        remote = RemoteCfg(**r)
        remote.max_images = int(remote.max_images)
        remote.candidate_limit = int(remote.candidate_limit)
        remote.probe_timeout_s = float(remote.probe_timeout_s)
        remote.probe_workers = max(1, int(remote.probe_workers))
        remote.cache_ttl_s = float(remote.cache_ttl_s)
        if mode == "remote" and not (remote.owner and remote.repo):
            raise ValueError("remote mode needs remote.owner and remote.repo")

        # store
        s = dict(data.get("store") or {})
        if "db" in s:
            s["db"] = Path(s["db"]).expanduser()
        store = StoreCfg(**s)
        store.quota_bytes = int(store.quota_bytes)
        store.max_upload_bytes = int(store.max_upload_bytes)

        server = ServerCfg(**(data.get("server") or {}))
        log_cfg = LoggingCfg(**(data.get("logging") or {}))

        return AppCfg(
            mode=mode,
            remote=remote,
            store=store,
            server=server,
            logging=log_cfg,
            )
