"""
Object storage for listing images and tax receipts.

Local filesystem backend laid out as <root>/<bucket>/<key>. Keys are
namespaced by owner id (see submission_service.build_object_path); public
URLs are unsigned and never expire: <public_base_url>/<bucket>/<key>.
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, Optional

from findmyestate.core.config import settings
from findmyestate.core.errors import StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredObject:
    key: str
    size: int
    modified_at: datetime


def _normalize_key(key: str) -> str:
    """Reject absolute keys and any '..' segment; return a clean posix key."""
    raw = (key or "").replace("\\", "/").strip()
    if not raw or raw.startswith("/"):
        raise StorageError(f"Invalid object key: {key!r}")
    parts = PurePosixPath(raw).parts
    if any(p in ("..", ".", "") for p in parts):
        raise StorageError(f"Invalid object key: {key!r}")
    return "/".join(parts)


class LocalObjectStorage:
    """Filesystem-backed bucket with upload / remove / public URL derivation."""

    def __init__(self, root_dir: str | Path, bucket: str, public_base_url: str = "/storage"):
        root = Path(root_dir)
        if not root.is_absolute():
            root = Path.cwd() / root
        self.root_dir = root
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    @property
    def bucket_dir(self) -> Path:
        return self.root_dir / self.bucket

    def _path_for(self, key: str) -> Path:
        return self.bucket_dir / _normalize_key(key)

    def upload(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        """
        Store data under key. Existing objects are never overwritten.
        Returns the normalized key. Raises StorageError on collision or IO failure.
        """
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # "xb" fails if the object already exists
            with open(path, "xb") as f:
                f.write(data)
        except FileExistsError as e:
            raise StorageError(f"Object already exists: {key}") from e
        except OSError as e:
            raise StorageError(f"Upload failed for {key}: {e}") from e
        logger.debug("Stored %s (%d bytes, %s)", key, len(data), content_type or "unknown type")
        return _normalize_key(key)

    def remove(self, keys: Iterable[str]) -> list[str]:
        """Delete objects; missing keys are skipped. Returns the keys actually removed."""
        removed: list[str] = []
        for key in keys:
            path = self._path_for(key)
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise StorageError(f"Remove failed for {key}: {e}") from e
            removed.append(_normalize_key(key))
        return removed

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def read(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Read failed for {key}: {e}") from e

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{_normalize_key(key)}"

    def key_from_url(self, url: str) -> Optional[str]:
        """Inverse of public_url; None for URLs that don't point into this bucket."""
        prefix = f"{self.public_base_url}/{self.bucket}/"
        if not url or not url.startswith(prefix):
            return None
        try:
            return _normalize_key(url[len(prefix):])
        except StorageError:
            return None

    def iter_objects(self) -> Iterator[StoredObject]:
        """Walk the bucket, yielding every stored object."""
        base = self.bucket_dir
        if not base.is_dir():
            return
        for dirpath, _dirnames, filenames in os.walk(base):
            for name in filenames:
                path = Path(dirpath) / name
                stat = path.stat()
                yield StoredObject(
                    key=path.relative_to(base).as_posix(),
                    size=stat.st_size,
                    modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )


def get_storage() -> LocalObjectStorage:
    """Dependency: storage configured from settings."""
    return LocalObjectStorage(
        root_dir=settings.storage_dir,
        bucket=settings.storage_bucket,
        public_base_url=settings.storage_public_base_url,
    )
