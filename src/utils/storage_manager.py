"""Object storage on the local filesystem.

Objects live at ``<root>/<bucket>/<path>``. Paths are relative, use forward
slashes, and can never resolve outside their bucket.
"""

import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from config import MAX_UPLOAD_SIZE, PUBLIC_STORAGE_BASE_URL, STORAGE_DIR
from core.exceptions import StorageError
from utils.clock import epoch_millis

logger = logging.getLogger(__name__)


def build_object_path(owner_id: str, filename: Optional[str]) -> str:
    """Build ``<owner_id>/<epoch_ms>-<suffix>.<ext>`` for a newly uploaded file."""
    ext = ""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
    stamp = f"{epoch_millis()}-{uuid.uuid4().hex[:8]}"
    return f"{owner_id}/{stamp}.{ext}" if ext else f"{owner_id}/{stamp}"


class StorageManager:
    """Bucket/path object store."""

    def __init__(
        self,
        root: Path = STORAGE_DIR,
        public_base_url: str = PUBLIC_STORAGE_BASE_URL,
        max_size: int = MAX_UPLOAD_SIZE,
    ):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.max_size = max_size

    def _resolve(self, bucket: str, path: str) -> Path:
        if not bucket or "/" in bucket or bucket in (".", ".."):
            raise StorageError(f"Invalid bucket name: {bucket!r}")
        if not path or path.startswith("/") or "\\" in path:
            raise StorageError(f"Invalid object path: {path!r}")
        bucket_dir = (self.root / bucket).resolve()
        target = (bucket_dir / path).resolve()
        if bucket_dir not in target.parents:
            raise StorageError(f"Object path escapes bucket: {path!r}")
        return target

    def upload(self, bucket: str, path: str, data: bytes) -> str:
        """Store bytes at bucket/path.

        Returns:
            The object path.

        Raises:
            StorageError: If the path is invalid, the object already exists,
                the payload is too large or the write fails.
        """
        if len(data) > self.max_size:
            raise StorageError(
                f"File exceeds maximum allowed size of {self.max_size // (1024 * 1024)}MB"
            )
        target = self._resolve(bucket, path)
        if target.exists():
            raise StorageError(f"Object already exists: {bucket}/{path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to upload {bucket}/{path}: {exc}") from exc
        logger.info("Uploaded %s/%s (%d bytes)", bucket, path, len(data))
        return path

    def download(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        if not target.is_file():
            raise StorageError(f"Object not found: {bucket}/{path}")
        try:
            return target.read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to download {bucket}/{path}: {exc}") from exc

    def get_file_path(self, bucket: str, path: str) -> Path:
        """Filesystem location of an existing object (for streaming responses)."""
        target = self._resolve(bucket, path)
        if not target.is_file():
            raise StorageError(f"Object not found: {bucket}/{path}")
        return target

    def delete(self, bucket: str, path: str) -> None:
        target = self._resolve(bucket, path)
        if target.is_file():
            target.unlink()
            logger.info("Deleted %s/%s", bucket, path)
        else:
            logger.warning("Object not found for deletion: %s/%s", bucket, path)

    def exists(self, bucket: str, path: str) -> bool:
        return self._resolve(bucket, path).is_file()

    def get_public_url(self, bucket: str, path: str) -> str:
        self._resolve(bucket, path)
        return f"{self.public_base_url}/{quote(bucket)}/{quote(path)}"

    @staticmethod
    def guess_content_type(filename: Optional[str]) -> str:
        if not filename:
            return "application/octet-stream"
        guessed, _ = mimetypes.guess_type(filename)
        return guessed or "application/octet-stream"
