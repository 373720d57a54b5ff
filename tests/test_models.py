from autogallery.errors import CorruptRecord
from autogallery.models import ImageRecord, SourceCoords
from autogallery.utils import decode_data_url, encode_data_url, fmt_size, normalize_key, sort_records

import pytest


def test_normalize_key():
    assert normalize_key("  Photo.JPG ") == "photo.jpg"


def test_sort_is_reverse_alphabetical_not_natural():
    recs = [ImageRecord.remote(key=n, name=n, url=n, strategy="x") for n in ["img2.png", "img10.png", "Img1.png"]]
    assert [r.name for r in sort_records(recs)] == ["img2.png", "img10.png", "Img1.png"]


def test_sort_follows_russian_collation():
    # Cyrillic after Latin when reversed; "_" and "." before digits
    names = ["photo.jpg", "photo_1.jpg", "photo1.jpg", "кот.jpg", "zebra.jpg"]
    recs = [ImageRecord.remote(key=n, name=n, url=n, strategy="x") for n in names]
    assert [r.name for r in sort_records(recs, "ru")] == [
        "zebra.jpg", "photo1.jpg", "photo.jpg", "photo_1.jpg", "кот.jpg",
    ]


def test_sort_is_case_insensitive():
    recs = [ImageRecord.remote(key=n, name=n, url=n, strategy="x") for n in ["apple.png", "Banana.png", "cherry.png"]]
    assert [r.name for r in sort_records(recs)] == ["cherry.png", "Banana.png", "apple.png"]


def test_data_url_codec():
    payload = encode_data_url(b"\x00\x01", "image/png")
    assert payload == "data:image/png;base64,AAE="
    assert decode_data_url(payload) == ("image/png", b"\x00\x01")
    with pytest.raises(ValueError):
        decode_data_url("data:text/plain;base64,AAE=")
    with pytest.raises(ValueError):
        decode_data_url("data:image/png,raw")


def test_display_source_per_origin():
    local = ImageRecord.local("a.png", "data:image/png;base64,AA==", "image/png", 1)
    remote = ImageRecord.remote(key="k", name="b.png", url="https://h/b.png", strategy="manifest",
                                raw_url="https://raw/b.png")
    assert local.display_source.startswith("data:image/png")
    assert local.source_strategy is None
    assert remote.display_source == "https://h/b.png"
    assert remote.source_strategy == "manifest"
    assert "payload" not in remote.to_dict()
    assert remote.to_dict()["rawUrl"] == "https://raw/b.png"


def test_remote_dict_round_trip_keeps_origin():
    remote = ImageRecord.remote(key="k", name="b.png", url="https://h/b.png", strategy="brute-probe")
    back = ImageRecord.from_dict(remote.to_dict())
    assert back == remote


def test_coords_key_separates_folders():
    a = SourceCoords(owner="o", repo="r", folder="/images")
    b = SourceCoords(owner="o", repo="r", folder="images/")
    c = SourceCoords(owner="o", repo="r", folder="")
    assert a.folder_path == b.folder_path == "images/"
    assert a.key == b.key
    assert c.folder_path == ""
    assert c.key != a.key


def test_fmt_size():
    assert fmt_size(512) == "512 B"
    assert fmt_size(1536) == "1.5 KB"
    assert fmt_size("x") == "?"


def test_validate_names_the_bad_record():
    rec = ImageRecord.local("a.png", "data:text/plain;base64,AA==", "image/png", 1)
    with pytest.raises(CorruptRecord) as exc:
        rec.validate()
    assert exc.value.name == "a.png"
    assert not rec.is_conforming()
    ImageRecord.remote(key="k", name="b.png", url="https://h/b.png", strategy="x").validate()
