"""
Shared fixtures: fake HTTP sessions and probes so nothing touches the network.
"""
import pytest

from autogallery.cache import DiscoveryCache
from autogallery.config import RemoteCfg
from autogallery.discovery import RemoteDiscoveryEngine
from autogallery.names import NameGenerator
from autogallery.storage import MemoryStorage
from autogallery.store import LocalStore


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text="", headers=None):
        self.status_code = status_code
        self._json = json_data
        self.text = text
        self.headers = headers or {}

    def json(self):
        if self._json is None:
            raise ValueError("no json body")
        return self._json

    def close(self):
        pass


class FakeSession:
    """Answers GET/HEAD from a url -> response map; query strings are ignored."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def _answer(self, method, url):
        base = url.split("?", 1)[0]
        self.calls.append((method, base))
        r = self.routes.get(base)
        if isinstance(r, Exception):
            raise r
        return r if r is not None else FakeResponse(404)

    def get(self, url, **kwargs):
        return self._answer("GET", url)

    def head(self, url, **kwargs):
        return self._answer("HEAD", url)


class FakeProbe:
    def __init__(self, hits=(), hit_all=False):
        self.hits = set(hits)
        self.hit_all = hit_all
        self.calls = []

    def __call__(self, url):
        self.calls.append(url)
        return self.hit_all or url in self.hits


API = "https://api.github.com/repos/o/r/contents/images"
RAW = "https://raw.githubusercontent.com/o/r/main/images/"
PAGES = "https://o.github.io/r/images/"


@pytest.fixture
def remote_cfg():
    return RemoteCfg(owner="o", repo="r", candidate_limit=12, max_images=1000)


@pytest.fixture
def small_names():
    return NameGenerator(prefixes=["photo", "cat"], exts=["jpg", "png"], number_max=2)


@pytest.fixture
def make_engine(remote_cfg, small_names):
    def _make(session=None, probe=None, cfg=None, cache=None):
        return RemoteDiscoveryEngine(
            cfg or remote_cfg,
            session=session or FakeSession(),
            probe=probe or FakeProbe(),
            cache=cache or DiscoveryCache(ttl_s=300),
            names=small_names,
        )
    return _make


@pytest.fixture
def storage():
    return MemoryStorage(quota_bytes=64 * 1024 * 1024)


@pytest.fixture
def store(storage):
    return LocalStore(storage)
