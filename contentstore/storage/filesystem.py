"""
Filesystem Blob Backend

Objects stored at: {base_dir}/{key}

No sidecar files are written; all descriptive metadata lives in the
repository. The content type reported by get_object_meta is sniffed from
the first bytes of the file, falling back to the key's extension.

Delete policy: strict. Deleting a missing key returns NOT_FOUND. After a
delete, now-empty parent directories are removed up to (but excluding)
base_dir.

Blocking file I/O runs in a worker thread (asyncio.to_thread) so the
event loop stays responsive and cancellation is honored at await points.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional
from urllib.parse import quote

from contentstore.core import constants as C
from contentstore.core.errors import StorageError
from contentstore.core.types import Err, Ok, Result
from contentstore.storage.base import BlobMeta, BlobStore, Payload, UploadParams, iter_payload
from contentstore.storage.config import FileSystemConfig

logger = logging.getLogger(__name__)

_SNIFF_BYTES = 512

# (signature, mime type) checked against the start of the file
_MAGIC: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"%PDF-", "application/pdf"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"BM", "image/bmp"),
    (b"OggS", "application/ogg"),
    (b"ID3", "audio/mpeg"),
)


def detect_content_type(head: bytes, key: str = "") -> str:
    """
    Detect a MIME type from leading bytes, then from the key extension.

    Complexity: O(k) in sniffed bytes
    """
    for signature, mime in _MAGIC:
        if head.startswith(signature):
            return mime
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    stripped = head.lstrip()
    if stripped[:5].lower() in (b"<!doc", b"<html"):
        return "text/html; charset=utf-8"
    if stripped[:5] == b"<?xml":
        return "text/xml; charset=utf-8"
    guessed, _ = mimetypes.guess_type(key)
    if guessed:
        return guessed
    if head and b"\x00" not in head:
        try:
            head.decode("utf-8")
            return "text/plain; charset=utf-8"
        except UnicodeDecodeError as e:
            # a multi-byte sequence cut at the sniff boundary is still text
            if e.start >= len(head) - 3:
                return "text/plain; charset=utf-8"
    return C.DEFAULT_MIME_TYPE


class FileSystemBackend(BlobStore):
    """
    Local filesystem storage backend.

    Example:
        backend = FileSystemBackend(FileSystemConfig(base_dir=Path("/var/data")))
        await backend.upload("originals/objects/ab/cd12_photo.jpg", data)
    """

    kind = "fs"

    __slots__ = ("_base_dir", "_url_prefix")

    def __init__(self, config: FileSystemConfig) -> None:
        self._base_dir = config.base_dir.resolve()
        self._url_prefix = config.url_prefix
        if config.create_dirs:
            self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _key_to_path(self, key: str) -> Result[Path, StorageError]:
        """Map a key to a path under base_dir, rejecting escapes."""
        if not key or key.startswith(("/", "\\")) or "\x00" in key:
            return Err(StorageError.invalid_key(self.kind, key, "key must be a non-empty relative path"))
        if any(part in (".", "..") for part in key.replace("\\", "/").split("/")):
            return Err(StorageError.invalid_key(self.kind, key, "key contains a relative path segment"))
        path = (self._base_dir / key).resolve()
        if path == self._base_dir or self._base_dir not in path.parents:
            return Err(StorageError.invalid_key(self.kind, key, "key escapes base directory"))
        return Ok(path)

    # -------------------------------------------------------------------------
    # WRITE
    # -------------------------------------------------------------------------

    def _write(self, path: Path, data: Payload) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # write to a temp file in the same directory, then rename over the
        # target so readers never observe a partial file
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as fh:
                for chunk in iter_payload(data):
                    fh.write(chunk)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def upload(self, key: str, data: Payload) -> Result[None, StorageError]:
        resolved = self._key_to_path(key)
        if resolved.is_err():
            return resolved
        try:
            await asyncio.to_thread(self._write, resolved.unwrap(), data)
        except (OSError, TypeError) as e:
            return Err(StorageError.backend_failure(self.kind, "upload", key, cause=e))
        logger.debug("Stored object", extra={"key": key, "backend": self.kind})
        return Ok(None)

    async def upload_with_params(
        self,
        data: Payload,
        params: UploadParams,
    ) -> Result[None, StorageError]:
        # no sidecar: the MIME type is kept in the repository only
        return await self.upload(params.object_key, data)

    # -------------------------------------------------------------------------
    # READ
    # -------------------------------------------------------------------------

    async def download(self, key: str) -> Result[BinaryIO, StorageError]:
        resolved = self._key_to_path(key)
        if resolved.is_err():
            return resolved
        path = resolved.unwrap()
        try:
            stream = await asyncio.to_thread(open, path, "rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return Err(StorageError.key_not_found(self.kind, key, "download"))
        except OSError as e:
            return Err(StorageError.backend_failure(self.kind, "download", key, cause=e))
        return Ok(stream)

    def _stat(self, path: Path, key: str) -> Optional[BlobMeta]:
        if not path.is_file():
            return None
        stat = path.stat()
        with path.open("rb") as fh:
            head = fh.read(_SNIFF_BYTES)
        content_type = detect_content_type(head, key)
        return BlobMeta(
            key=key,
            size=stat.st_size,
            content_type=content_type,
            updated_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            etag=f"{stat.st_size:x}-{stat.st_mtime_ns:x}",
            metadata={"content_type": content_type},
        )

    async def get_object_meta(self, key: str) -> Result[BlobMeta, StorageError]:
        resolved = self._key_to_path(key)
        if resolved.is_err():
            return resolved
        try:
            meta = await asyncio.to_thread(self._stat, resolved.unwrap(), key)
        except FileNotFoundError:
            meta = None
        except OSError as e:
            return Err(StorageError.backend_failure(self.kind, "get_object_meta", key, cause=e))
        if meta is None:
            return Err(StorageError.key_not_found(self.kind, key, "get_object_meta"))
        return Ok(meta)

    # -------------------------------------------------------------------------
    # DELETE
    # -------------------------------------------------------------------------

    def _remove(self, path: Path) -> bool:
        if not path.is_file():
            return False
        path.unlink()
        self._cleanup_empty_dirs(path.parent)
        return True

    def _cleanup_empty_dirs(self, directory: Path) -> None:
        """Remove empty directories walking up to, not including, base_dir."""
        while directory != self._base_dir and self._base_dir in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                # not empty, or already removed by a concurrent delete
                return
            directory = directory.parent

    async def delete(self, key: str) -> Result[None, StorageError]:
        resolved = self._key_to_path(key)
        if resolved.is_err():
            return resolved
        try:
            removed = await asyncio.to_thread(self._remove, resolved.unwrap())
        except FileNotFoundError:
            removed = False
        except OSError as e:
            return Err(StorageError.backend_failure(self.kind, "delete", key, cause=e))
        if not removed:
            return Err(StorageError.key_not_found(self.kind, key, "delete"))
        return Ok(None)

    # -------------------------------------------------------------------------
    # URLS
    # -------------------------------------------------------------------------

    def _url(self, action: str, key: str) -> str:
        return f"{self._url_prefix}/{action}/{quote(key, safe='/')}"

    async def get_upload_url(self, key: str) -> Result[str, StorageError]:
        if not self._url_prefix:
            return self._unsupported("get_upload_url", "no url_prefix configured")
        return Ok(self._url("upload", key))

    async def get_download_url(self, key: str, filename: str = "") -> Result[str, StorageError]:
        if not self._url_prefix:
            return self._unsupported("get_download_url", "no url_prefix configured")
        url = self._url("download", key)
        if filename:
            url = f"{url}?filename={quote(filename, safe='')}"
        return Ok(url)

    async def get_preview_url(self, key: str) -> Result[str, StorageError]:
        if not self._url_prefix:
            return self._unsupported("get_preview_url", "no url_prefix configured")
        return Ok(self._url("preview", key))

    def __repr__(self) -> str:
        return f"FileSystemBackend(base_dir={str(self._base_dir)!r})"
