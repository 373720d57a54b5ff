from __future__ import annotations


class GalleryError(Exception):
    pass


class NetworkUnavailable(GalleryError):
    """A discovery strategy could not reach its endpoint. Never leaves the engine."""


class NotFound(GalleryError):
    pass


class ImagesNotFound(NotFound):
    def __init__(self, coords, confirmed_empty: bool = False):
        self.coords = coords
        self.confirmed_empty = confirmed_empty
        if confirmed_empty:
            msg = f"folder {coords.folder!r} in {coords.owner}/{coords.repo} is empty"
        else:
            msg = f"no images could be confirmed in {coords.owner}/{coords.repo}/{coords.folder}"
        super().__init__(msg)


class RecordNotFound(NotFound, KeyError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"no record with key {key!r}")

    def __str__(self):
        return f"no record with key {self.key!r}"


class IngestError(GalleryError):
    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"{name}: {reason}")


class UnsupportedType(IngestError):
    pass


class TooLarge(IngestError):
    pass


class CorruptRecord(GalleryError):
    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"{name}: {reason}")


class StorageQuotaExceeded(GalleryError):
    def __init__(self, required_bytes: int, quota_bytes: int):
        self.required_bytes = required_bytes
        self.quota_bytes = quota_bytes
        super().__init__(f"storage quota exceeded: need {required_bytes} bytes, quota is {quota_bytes}")
