"""Local object storage: keys, uploads, removal, public URLs."""
import pytest

from findmyestate.core.errors import StorageError
from findmyestate.storage.object_storage import LocalObjectStorage


class TestUpload:

    def test_upload_and_read(self, storage):
        key = storage.upload("owner/1-abc.jpg", b"data", "image/jpeg")
        assert key == "owner/1-abc.jpg"
        assert storage.exists(key)
        assert storage.read(key) == b"data"

    def test_never_overwrites(self, storage):
        storage.upload("owner/a.jpg", b"first")
        with pytest.raises(StorageError):
            storage.upload("owner/a.jpg", b"second")
        assert storage.read("owner/a.jpg") == b"first"

    @pytest.mark.parametrize("key", ["/etc/passwd", "owner/../../escape.jpg", "", "../a.jpg"])
    def test_rejects_unsafe_keys(self, storage, key):
        with pytest.raises(StorageError):
            storage.upload(key, b"x")


class TestRemove:

    def test_missing_keys_are_skipped(self, storage):
        storage.upload("owner/a.jpg", b"1")
        assert storage.remove(["owner/a.jpg", "owner/missing.jpg"]) == ["owner/a.jpg"]
        assert not storage.exists("owner/a.jpg")


class TestPublicUrl:

    def test_url_round_trip(self, storage):
        url = storage.public_url("owner/a.jpg")
        assert url == "/storage/property-images/owner/a.jpg"
        assert storage.key_from_url(url) == "owner/a.jpg"

    def test_foreign_urls_have_no_key(self, storage):
        assert storage.key_from_url("https://cdn.example.com/x.jpg") is None
        assert storage.key_from_url("/storage/other-bucket/a.jpg") is None
        assert storage.key_from_url("") is None

    def test_base_url_trailing_slash(self, tmp_path):
        s = LocalObjectStorage(tmp_path, "bucket", "https://files.example.com/")
        assert s.public_url("k/v.png") == "https://files.example.com/bucket/k/v.png"


def test_iter_objects_lists_nested_keys(storage):
    storage.upload("u1/a.jpg", b"12")
    storage.upload("u1/tax-receipts/r.pdf", b"123")
    objects = {o.key: o.size for o in storage.iter_objects()}
    assert objects == {"u1/a.jpg": 2, "u1/tax-receipts/r.pdf": 3}


def test_iter_objects_empty_bucket(tmp_path):
    assert list(LocalObjectStorage(tmp_path / "nothing", "b").iter_objects()) == []
