from autogallery.names import NameGenerator


def test_default_limit_is_500_and_unique():
    names = NameGenerator().generate()
    assert len(names) == 500
    assert len(set(names)) == 500


def test_deterministic_and_restartable():
    a = NameGenerator().generate(120)
    b = NameGenerator().generate(120)
    assert a == b
    assert NameGenerator().generate(10) == a[:10]


def test_order_starts_with_prefix_variants():
    names = NameGenerator().generate(5)
    assert names == ["photo.jpg", "photo1.jpg", "photo2.jpg", "photo_large.jpg", "photo_small.jpg"]


def test_numeric_series_follows_prefixes():
    gen = NameGenerator(prefixes=["cat"], exts=["png"], number_max=2)
    names = gen.generate(100)
    assert names == [
        "cat.png", "cat1.png", "cat2.png", "cat_large.png", "cat_small.png",
        "1.png", "img1.png", "photo1.png", "picture1.png",
        "2.png", "img2.png", "photo2.png", "picture2.png",
    ]


def test_duplicates_removed_before_truncation():
    # "photo" + "1" and the numeric "photo1" collide
    gen = NameGenerator(prefixes=["photo"], exts=["jpg"], number_max=1)
    names = gen.generate(100)
    assert names.count("photo1.jpg") == 1
    assert len(names) == len(set(names))


def test_non_positive_limit():
    assert NameGenerator().generate(0) == []
    assert NameGenerator().generate(-3) == []
