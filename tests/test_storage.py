import pytest

from autogallery.errors import StorageQuotaExceeded
from autogallery.storage import MemoryStorage, SqliteStorage


@pytest.fixture(params=["memory", "sqlite"])
def make_storage(request, tmp_path):
    def _make(quota_bytes=100):
        if request.param == "memory":
            return MemoryStorage(quota_bytes=quota_bytes)
        return SqliteStorage(tmp_path / "kv.db", quota_bytes=quota_bytes)
    return _make


def test_absent_key_is_none(make_storage):
    assert make_storage().get("missing") is None


def test_set_get_remove(make_storage):
    s = make_storage()
    s.set("k", "value")
    assert s.get("k") == "value"
    assert s.usage_bytes() == 5
    s.remove("k")
    assert s.get("k") is None
    s.remove("k")  # removing twice is fine


def test_quota_rejects_without_writing(make_storage):
    s = make_storage(quota_bytes=10)
    s.set("a", "12345")
    with pytest.raises(StorageQuotaExceeded) as exc:
        s.set("b", "123456")
    assert exc.value.required_bytes == 11
    assert exc.value.quota_bytes == 10
    assert s.get("b") is None
    assert s.get("a") == "12345"


def test_overwrite_counts_only_new_value(make_storage):
    s = make_storage(quota_bytes=10)
    s.set("a", "1234567890")
    s.set("a", "0987654321")
    assert s.get("a") == "0987654321"


def test_quota_counts_bytes_not_characters(make_storage):
    s = make_storage(quota_bytes=4)
    with pytest.raises(StorageQuotaExceeded):
        s.set("a", "ééé")  # 6 bytes in utf-8


def test_sqlite_survives_reopen(tmp_path):
    path = tmp_path / "nested" / "kv.db"
    s = SqliteStorage(path)
    s.set("k", "[1, 2]")
    s.close()
    assert SqliteStorage(path).get("k") == "[1, 2]"
