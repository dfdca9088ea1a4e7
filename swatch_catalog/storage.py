# swatch_catalog/storage.py
"""
Local object storage: one directory per bucket under STORAGE_DIR, objects
addressed by a relative key ("820/main.webp"). Writes are upserts guarded by a
per-object file lock. Public URLs follow the same rule as
`swatch_catalog.core.images.public_object_url` and are served by the API.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional

from filelock import FileLock

from swatch_catalog.config import settings
from swatch_catalog.core.errors import StorageError
from swatch_catalog.core.images import public_object_url

logger = logging.getLogger(__name__)


class ObjectStorage:
    def __init__(self, root: Optional[Path] = None, bucket: Optional[str] = None,
                 public_base_url: Optional[str] = None):
        self.root = Path(root if root is not None else settings.STORAGE_DIR)
        self.bucket = bucket or settings.STORAGE_BUCKET
        self.public_base_url = public_base_url if public_base_url is not None else settings.PUBLIC_BASE_URL

    @property
    def bucket_dir(self) -> Path:
        return self.root / self.bucket

    def _path(self, key: str) -> Path:
        parts = PurePosixPath(key.strip().lstrip("/")).parts
        if not parts or any(p in ("..", ".") for p in parts):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.bucket_dir.joinpath(*parts)

    def _lock_for(self, path: Path) -> FileLock:
        return FileLock(str(path) + ".lock")

    def upload(self, key: str, data: bytes, content_type: str = "application/octet-stream",
               upsert: bool = True) -> str:
        """Write `data` at `key`. Returns the key."""
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock_for(path):
                if path.exists() and not upsert:
                    raise StorageError(f"Object already exists: {key}")
                tmp = path.with_name(path.name + ".part")
                tmp.write_bytes(data)
                tmp.replace(path)
        except OSError as e:
            logger.exception("Upload to %s/%s failed", self.bucket, key)
            raise StorageError(f"Failed to store {key}") from e
        logger.info("Stored %s/%s (%d bytes, %s)", self.bucket, key, len(data), content_type)
        return key

    def download(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise StorageError(f"Object not found: {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {key}") from e

    def exists(self, key: str) -> bool:
        try:
            return self._path(key).is_file()
        except StorageError:
            return False

    def remove(self, keys: Iterable[str]) -> List[str]:
        """Delete objects; missing keys are ignored. Returns the keys actually removed."""
        removed = []
        for key in keys:
            path = self._path(key)
            if not path.parent.is_dir():
                continue
            try:
                with self._lock_for(path):
                    if path.exists():
                        path.unlink()
                        removed.append(key)
            except OSError as e:
                raise StorageError(f"Failed to delete {key}") from e
        return removed

    def public_url(self, key: str) -> str:
        return public_object_url(key, self.bucket, self.public_base_url)

    def local_path(self, key: str) -> Path:
        return self._path(key)


storage = ObjectStorage()
