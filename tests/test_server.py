import pytest
from fastapi.testclient import TestClient

from autogallery.errors import ImagesNotFound
from autogallery.models import ImageRecord, SourceCoords
from autogallery.server import create_app
from autogallery.storage import MemoryStorage
from autogallery.store import LocalStore


@pytest.fixture
def client(store):
    return TestClient(create_app(store))


def _upload(client, *files):
    return client.post("/upload", files=[("files", f) for f in files])


def test_upload_list_and_fetch(client, store):
    r = _upload(client, ("cat.jpg", b"\xff" * 1200, "image/jpeg"), ("Dog.png", b"png", "image/png"))
    assert r.status_code == 200
    assert [i["key"] for i in r.json()["added"]] == ["cat.jpg", "dog.png"]

    items = client.get("/library").json()["items"]
    assert [i["name"] for i in items] == ["Dog.png", "cat.jpg"]
    assert items[1]["sizeBytes"] == 1200
    assert items[1]["displaySource"] == "/media/cat.jpg"
    assert "payload" not in items[1]

    media = client.get("/media/CAT.jpg")
    assert media.status_code == 200
    assert media.content == b"\xff" * 1200
    assert media.headers["content-type"] == "image/jpeg"

    # persisted
    assert len(LocalStore(store.storage).load()) == 2


def test_upload_rejections_do_not_abort_batch(client):
    r = _upload(client, ("notes.txt", b"hi", "text/plain"), ("a.png", b"png", "image/png"))
    body = r.json()
    assert r.status_code == 200
    assert [i["name"] for i in body["added"]] == ["a.png"]
    assert body["rejected"][0]["name"] == "notes.txt"
    assert body["rejected"][0]["kind"] == "UnsupportedType"


def test_upload_all_rejected(client):
    r = _upload(client, ("notes.txt", b"hi", "text/plain"))
    assert r.status_code == 400
    assert r.json()["ok"] is False


def test_upload_over_quota():
    store = LocalStore(MemoryStorage(quota_bytes=200))
    client = TestClient(create_app(store))
    r = _upload(client, ("big.png", b"x" * 1000, "image/png"))
    assert r.status_code == 507
    assert r.json()["detail"]["added"] == ["big.png"]
    # kept in memory for the user to sort out
    assert [rec.key for rec in store.records] == ["big.png"]


def test_delete_and_clear(client, store):
    _upload(client, ("a.png", b"a", "image/png"), ("b.png", b"b", "image/png"))
    assert client.delete("/library/a.png").status_code == 200
    assert client.delete("/library/a.png").status_code == 404
    assert [r.key for r in store.records] == ["b.png"]
    assert client.delete("/library").status_code == 200
    assert client.get("/library").json()["items"] == []


def test_item_meta_and_missing(client):
    _upload(client, ("a.png", b"a", "image/png"))
    assert client.get("/library/a.png").json()["extension"] == "png"
    assert client.get("/library/nope.png").status_code == 404
    assert client.get("/media/nope.png").status_code == 404


def test_repair_and_stats(client, store):
    _upload(client, ("a.png", b"a", "image/png"))
    assert client.post("/library/repair").json()["removed"] == 0
    stats = client.get("/stats/storage").json()
    assert stats["itemCount"] == 1
    assert stats["status"] == "good"
    assert stats["quotaBytes"] == store.storage.quota_bytes


def test_backup_round_trip(client, store):
    _upload(client, ("a.png", b"a", "image/png"))
    r = client.get("/backup")
    assert "gallery-full-backup-" in r.headers["content-disposition"]
    backup = r.json()

    other = LocalStore(MemoryStorage())
    other_client = TestClient(create_app(other))
    body = other_client.post("/backup", json=backup).json()
    assert body["imported"] == 1
    assert [rec.key for rec in other.records] == ["a.png"]

    assert client.post("/backup", json={"nothing": True}).status_code == 400
    compact = client.get("/backup", params={"compact": "true"}).json()
    assert "payload" not in compact["images"][0]


def test_discover_without_engine(client):
    assert client.get("/discover").status_code == 404


class StubEngine:
    def __init__(self, records=None):
        self.records = records
        self.last_strategy = "manifest"
        self.calls = []

    def discover(self, coords=None):
        self.calls.append(("discover", coords))
        if not self.records:
            raise ImagesNotFound(coords, confirmed_empty=True)
        return self.records

    def refresh(self, coords=None):
        self.calls.append(("refresh", coords))
        return self.discover(coords)


def test_discover_with_engine(store):
    coords = SourceCoords(owner="o", repo="r")
    rec = ImageRecord.remote(key="a.png", name="a.png", url="https://h/a.png", strategy="manifest")
    engine = StubEngine([rec])
    client = TestClient(create_app(store, engine, coords))

    body = client.get("/discover").json()
    assert body["strategy"] == "manifest"
    assert body["items"][0]["displaySource"] == "https://h/a.png"
    assert body["items"][0]["sourceStrategy"] == "manifest"

    client.get("/discover", params={"refresh": "true"})
    assert engine.calls[-2][0] == "refresh"


def test_discover_not_found(store):
    coords = SourceCoords(owner="o", repo="r")
    client = TestClient(create_app(store, StubEngine(), coords))
    r = client.get("/discover")
    assert r.status_code == 404
    assert r.json()["detail"]["confirmedEmpty"] is True
