"""
Photo object storage — a filesystem bucket served under ``STORAGE_URL_PREFIX``.

Objects are addressed by a bucket-relative path such as
``ACME/3f6c.../1.jpg``; the public URL is the prefix plus bucket plus path.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath

from tracker.core.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an object cannot be written to the bucket."""


class PhotoStorage:
    def __init__(self, root: str | Path, bucket: str, url_prefix: str) -> None:
        self.bucket = bucket
        self.bucket_dir = Path(root) / bucket
        self.url_prefix = url_prefix.rstrip("/")

    def _resolve(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise StorageError(f"Invalid object path: {path}")
        return self.bucket_dir.joinpath(*rel.parts)

    def public_url(self, path: str) -> str:
        return f"{self.url_prefix}/{self.bucket}/{path}"

    async def upload(self, path: str, data: bytes) -> str:
        """Write *data* at *path* (refusing to overwrite) and return its public URL."""
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("xb") as fh:
                fh.write(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise StorageError(f"Upload of {path} failed: {exc}") from exc
        logger.info("Stored object %s/%s (%d bytes)", self.bucket, path, len(data))
        return self.public_url(path)

    async def remove(self, paths: list[str]) -> None:
        """Delete objects; missing ones are ignored."""

        def _unlink() -> None:
            for path in paths:
                self._resolve(path).unlink(missing_ok=True)

        await asyncio.to_thread(_unlink)
        logger.info("Removed %d object(s) from %s", len(paths), self.bucket)


def get_storage() -> PhotoStorage:
    """FastAPI dependency — the configured photo bucket."""
    return PhotoStorage(settings.STORAGE_DIR, settings.STORAGE_BUCKET, settings.STORAGE_URL_PREFIX)
