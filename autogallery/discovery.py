# autogallery/discovery.py
from __future__ import annotations
import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from .cache import DiscoveryCache
from .config import RemoteCfg
from .constants import COMMON_NAMES, REMOTE_IMAGE_EXTS, USER_AGENT
from .errors import ImagesNotFound, NetworkUnavailable
from .models import ImageRecord, SourceCoords
from .names import NameGenerator
from .probe import ExistenceProbe
from .utils import is_image_name, normalize_key, sort_records

log = logging.getLogger("autogallery.discovery")

LISTING = "listing"
MANIFEST = "manifest"
ENDPOINT_PROBE = "endpoint-probe"
BRUTE_PROBE = "brute-probe"
STRATEGIES = (LISTING, MANIFEST, ENDPOINT_PROBE, BRUTE_PROBE)

# Raw strategy output: {"name", "url", "raw_url"?, "pages_url"?, "size"?, "key"?}
RawItem = Dict[str, object]
StaleCallback = Callable[[List[ImageRecord]], None]


def parse_manifest(text: str) -> List[RawItem]:
    """
    Plain text (one name per line, '#' comments) or JSON: a list of names or of
    {name, url?, rawUrl?, size?} objects, optionally wrapped in {"images": [...]}.
    Unparseable JSON yields an empty list.
    Entry fields of the wrong type are dropped (urls) or zeroed (size).
    """
    body = text.strip()
    if not body:
        return []
    if body[0] in "[{":
        try:
            data = json.loads(body)
        except ValueError as e:
            log.warning(f"manifest is not valid JSON: {e}")
            return []
        if isinstance(data, dict):
            data = data.get("images") or []
        if not isinstance(data, list):
            return []
        out: List[RawItem] = []
        for item in data:
            if isinstance(item, str) and item.strip():
                out.append({"name": item.strip()})
            elif isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"].strip():
                out.append({
                    "name": item["name"].strip(),
                    "url": _str_or_none(item.get("url")),
                    "raw_url": _str_or_none(item.get("rawUrl")) or _str_or_none(item.get("raw_url")),
                    "size": _size(item.get("size")),
                })
        return out
    return [
        {"name": line.strip()}
        for line in body.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]


def _str_or_none(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None

def _size(value) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0

class RemoteDiscoveryEngine:
    """
    Finds the images in a remote folder by walking a fixed strategy chain:

      1. listing        - the host's contents API (authoritative)
      2. manifest       - a published list of names, each one probed
      3. endpoint-probe - a short list of common names against the pages mirror
      4. brute-probe    - generated names, probed one by one

    The first strategy with a non-empty result wins. Results are deduplicated
    by normalized name, sorted Z to A, cached and returned. If nothing is
    found, ImagesNotFound is raised.
    """

    def __init__(self, cfg: RemoteCfg, session: requests.Session | None = None,
                 probe: Callable[[str], bool] | None = None,
                 cache: DiscoveryCache | None = None,
                 names: NameGenerator | None = None):
        self.cfg = cfg
        self.session = session or requests.Session()
        self.probe = probe or ExistenceProbe(
            self.session, timeout_s=cfg.probe_timeout_s, max_workers=max(4, cfg.probe_workers * 4)
        )
        self.cache = cache or DiscoveryCache(ttl_s=cfg.cache_ttl_s)
        self.names = names or NameGenerator()
        self.last_strategy: Optional[str] = None
        self._lock = threading.Lock()
        self._inflight: Dict[str, Future] = {}

    # ---------- URLs ----------
    def raw_url(self, coords: SourceCoords, name: str) -> str:
        return f"{self.cfg.raw_base.rstrip('/')}/{coords.owner}/{coords.repo}/{coords.branch}/{coords.folder_path}{quote(name)}"

    def pages_url(self, coords: SourceCoords, name: str) -> Optional[str]:
        if not coords.pages_url:
            return None
        return f"{coords.pages_url.rstrip('/')}/{coords.folder_path}{quote(name)}"

    def web_raw_url(self, coords: SourceCoords, name: str) -> str:
        return f"{self.cfg.web_base.rstrip('/')}/{coords.owner}/{coords.repo}/raw/{coords.branch}/{coords.folder_path}{quote(name)}"

    def listing_url(self, coords: SourceCoords) -> str:
        folder = coords.folder_path.rstrip("/")
        return f"{self.cfg.api_base.rstrip('/')}/repos/{coords.owner}/{coords.repo}/contents/{folder}"

    # ---------- public ----------
    def discover(self, coords: SourceCoords | None = None,
                 on_stale: StaleCallback | None = None) -> List[ImageRecord]:
        """
        Return the sorted snapshot for `coords`.

        A cached snapshot, if any, is handed to `on_stale` before the chain
        runs. Concurrent calls for the same coordinates share one run.
        """
        coords = coords or self.cfg.coords()
        with self._lock:
            fut = self._inflight.get(coords.key)
            leader = fut is None
            if leader:
                fut = Future()
                self._inflight[coords.key] = fut
        if not leader:
            log.info(f"discovery already running for {coords.key}; waiting for it")
            stale = self.cache.get(coords)
            if stale and on_stale:
                on_stale(stale)
            return list(fut.result())

        try:
            result = self._discover(coords, on_stale)
        except BaseException as e:
            fut.set_exception(e)
            raise
        else:
            fut.set_result(result)
            return result
        finally:
            with self._lock:
                self._inflight.pop(coords.key, None)

    def refresh(self, coords: SourceCoords | None = None,
                on_stale: StaleCallback | None = None) -> List[ImageRecord]:
        """Drop the cached snapshot and rediscover."""
        coords = coords or self.cfg.coords()
        self.cache.invalidate(coords)
        return self.discover(coords, on_stale)

    def close(self):
        if isinstance(self.probe, ExistenceProbe):
            self.probe.close()

    # ---------- chain ----------
    def _discover(self, coords: SourceCoords, on_stale: StaleCallback | None) -> List[ImageRecord]:
        stale = self.cache.get(coords)
        if stale:
            log.info(f"serving {len(stale)} cached records for {coords.key} while rescanning")
            if on_stale:
                on_stale(stale)

        fresh, strategy, confirmed_empty = self._run_chain(coords)
        if fresh:
            self.last_strategy = strategy
            self.cache.put(coords, fresh)
            log.info(f"found {len(fresh)} images via {strategy}")
            return fresh
        if stale:
            # freshest non-empty wins; a failed rescan does not blank a good snapshot
            log.warning(f"rescan of {coords.key} found nothing; keeping cached snapshot")
            return stale
        raise ImagesNotFound(coords, confirmed_empty=confirmed_empty)

    def _run_chain(self, coords: SourceCoords) -> Tuple[List[ImageRecord], Optional[str], bool]:
        confirmed_empty = False
        steps = (
            (LISTING, self._from_listing),
            (MANIFEST, self._from_manifest),
            (ENDPOINT_PROBE, self._from_endpoints),
            (BRUTE_PROBE, self._from_brute),
        )
        for strategy, step in steps:
            log.info(f"trying {strategy} for {coords.key}")
            try:
                raw = step(coords)
            except NetworkUnavailable as e:
                log.info(f"{strategy} unavailable: {e}")
                continue
            if strategy == LISTING and not raw:
                confirmed_empty = True
            records = self._normalize(raw, strategy)
            if records:
                return records, strategy, False
            log.info(f"{strategy} found nothing")
        return [], None, confirmed_empty

    def _normalize(self, raw: Iterable[RawItem], strategy: str) -> List[ImageRecord]:
        seen, out = set(), []
        for item in raw:
            name = str(item["name"])
            norm = normalize_key(name)
            if norm in seen:
                continue
            seen.add(norm)
            out.append(ImageRecord.remote(
                key=str(item.get("key") or norm),
                name=name,
                url=str(item["url"]),
                strategy=strategy,
                raw_url=item.get("raw_url"),
                pages_url=item.get("pages_url"),
                size_bytes=_size(item.get("size")),
            ))
        return sort_records(out, self.cfg.collation_locale)

    # ---------- 1. listing ----------
    def _from_listing(self, coords: SourceCoords) -> List[RawItem]:
        headers = {"Accept": "application/vnd.github.v3+json", "User-Agent": USER_AGENT}
        token = self.cfg.api_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        url = self.listing_url(coords)
        try:
            r = self.session.get(url, headers=headers, params={"ref": coords.branch},
                                 timeout=self.cfg.probe_timeout_s * 5)
        except requests.RequestException as e:
            raise NetworkUnavailable(f"listing request failed: {e}") from e
        if r.status_code != 200:
            raise NetworkUnavailable(f"listing answered {r.status_code}")
        try:
            files = r.json()
        except ValueError as e:
            raise NetworkUnavailable(f"listing is not JSON: {e}") from e
        if not isinstance(files, list):
            raise NetworkUnavailable("listing did not return a folder")

        out: List[RawItem] = []
        for f in files:
            if not isinstance(f, dict) or f.get("type") != "file":
                continue
            name = _str_or_none(f.get("name")) or ""
            if not is_image_name(name, REMOTE_IMAGE_EXTS):
                continue
            raw = self.raw_url(coords, name)
            out.append({
                "key": _str_or_none(f.get("sha")),
                "name": name,
                "url": _str_or_none(f.get("download_url")) or raw,
                "raw_url": raw,
                "pages_url": self.pages_url(coords, name),
                "size": _size(f.get("size")),
            })
        return out

    # ---------- 2. manifest ----------
    def _fetch_manifest(self, coords: SourceCoords) -> Optional[List[RawItem]]:
        base = f"{self.cfg.raw_base.rstrip('/')}/{coords.owner}/{coords.repo}/{coords.branch}/"
        reachable = False
        for pattern in self.cfg.manifest_names:
            url = base + pattern.format(folder=coords.folder_path)
            try:
                r = self.session.get(url, headers={"User-Agent": USER_AGENT},
                                     timeout=self.cfg.probe_timeout_s * 2)
            except requests.RequestException as e:
                log.debug(f"manifest fetch failed {url}: {e}")
                continue
            reachable = True
            if r.status_code == 200:
                log.info(f"using manifest {url}")
                return parse_manifest(r.text)
        if not reachable:
            raise NetworkUnavailable("no manifest location reachable")
        return None

    def _from_manifest(self, coords: SourceCoords) -> List[RawItem]:
        entries = self._fetch_manifest(coords)
        if not entries:
            return []
        candidates = []
        for e in entries:
            name = str(e["name"])
            if not is_image_name(name, REMOTE_IMAGE_EXTS):
                log.debug(f"manifest entry skipped (not an image): {name}")
                continue
            urls = [u for u in (e.get("url"), e.get("raw_url"),
                                self.raw_url(coords, name), self.pages_url(coords, name)) if u]
            candidates.append((name, urls, _size(e.get("size")), e.get("raw_url")))
        return self._probe_candidates(coords, candidates)

    # ---------- 3. endpoint probing ----------
    def _from_endpoints(self, coords: SourceCoords) -> List[RawItem]:
        if not coords.pages_url:
            return []
        candidates = [(name, [self.pages_url(coords, name)], 0, None) for name in COMMON_NAMES]
        return self._probe_candidates(coords, candidates)

    # ---------- 4. brute probing ----------
    def _from_brute(self, coords: SourceCoords) -> List[RawItem]:
        candidates = []
        for name in self.names.generate(self.cfg.candidate_limit):
            urls = [self.raw_url(coords, name), self.pages_url(coords, name), self.web_raw_url(coords, name)]
            candidates.append((name, [u for u in urls if u], 0, None))
        return self._probe_candidates(coords, candidates, stop_at=self.cfg.max_images)

    # ---------- probing ----------
    def _first_hit(self, urls: Sequence[str]) -> Optional[str]:
        for url in urls:
            if self.probe(url):
                return url
        return None

    def _probe_candidates(self, coords: SourceCoords, candidates: List[tuple],
                          stop_at: int | None = None) -> List[RawItem]:
        found: List[RawItem] = []

        def keep(name, hit, size, raw_url):
            found.append({
                "name": name,
                "url": hit,
                "raw_url": raw_url or self.raw_url(coords, name),
                "pages_url": self.pages_url(coords, name),
                "size": size,
            })

        workers = self.cfg.probe_workers
        if workers <= 1:
            for name, urls, size, raw_url in candidates:
                if stop_at is not None and len(found) >= stop_at:
                    log.info(f"stopping probe scan at {stop_at} images")
                    break
                hit = self._first_hit(urls)
                if hit:
                    keep(name, hit, size, raw_url)
            return found

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scan") as pool:
            for i in range(0, len(candidates), workers):
                if stop_at is not None and len(found) >= stop_at:
                    log.info(f"stopping probe scan at {stop_at} images")
                    break
                batch = candidates[i:i + workers]
                hits = pool.map(lambda c: self._first_hit(c[1]), batch)
                for (name, _urls, size, raw_url), hit in zip(batch, hits):
                    if hit:
                        keep(name, hit, size, raw_url)
        return found[:stop_at] if stop_at is not None else found
