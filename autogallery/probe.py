# autogallery/probe.py
from __future__ import annotations
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from urllib.parse import urlsplit, urlunsplit

import requests

from .constants import PROBE_TIMEOUT_S, USER_AGENT

log = logging.getLogger("autogallery.probe")


def bust_cache(url: str, stamp: int | None = None) -> str:
    """Append ``t=<ms>`` so intermediate caches can't answer with a stale 404/200."""
    stamp = int(time.time() * 1000) if stamp is None else stamp
    parts = urlsplit(url)
    query = f"{parts.query}&t={stamp}" if parts.query else f"t={stamp}"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


class ExistenceProbe:
    """
    probe(url) -> bool, never raises.

    True only for a 2xx answer with an image/* content type. The HTTP call runs
    on a small pool so the timeout is a hard wall: a pending request loses the
    race once `timeout_s` has elapsed.
    """

    def __init__(self, session: requests.Session | None = None,
                 timeout_s: float = PROBE_TIMEOUT_S, max_workers: int = 4):
        self.session = session or requests.Session()
        self.timeout_s = timeout_s
        self.pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="probe")

    def close(self):
        self.pool.shutdown(wait=False, cancel_futures=True)

    def _check(self, url: str) -> bool:
        headers = {"User-Agent": USER_AGENT}
        r = self.session.head(url, headers=headers, allow_redirects=True, timeout=self.timeout_s)
        if r.status_code in (405, 501):
            # some static hosts refuse HEAD
            r = self.session.get(url, headers=headers, stream=True, timeout=self.timeout_s)
            r.close()
        if not (200 <= r.status_code < 300):
            return False
        ctype = (r.headers.get("content-type") or "").lower()
        return ctype.startswith("image/")

    def probe(self, url: str) -> bool:
        try:
            target = bust_cache(url)
        except (TypeError, ValueError, AttributeError) as e:
            log.debug(f"skipping malformed url {url!r}: {e}")
            return False
        try:
            fut = self.pool.submit(self._check, target)
        except RuntimeError as e:
            log.debug(f"probe pool unavailable for {url}: {e}")
            return False
        try:
            ok = bool(fut.result(timeout=self.timeout_s))
        except FuturesTimeout:
            fut.cancel()
            log.debug(f"probe timed out after {self.timeout_s}s: {url}")
            return False
        except Exception as e:
            log.debug(f"probe failed for {url}: {e}")
            return False
        log.debug(f"probe {'hit' if ok else 'miss'}: {url}")
        return ok

    __call__ = probe
