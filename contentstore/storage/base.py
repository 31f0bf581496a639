"""
Blob Storage Contract

Uniform async interface implemented by every storage backend (memory,
filesystem, S3-compatible). Backends are addressed by the name they are
registered under in the BackendRegistry, never by their type.

Contract:
    upload(key, data)                      write bytes under key
    upload_with_params(data, params)       write bytes and persist MIME type
    download(key)                          binary stream; NOT_FOUND if absent
    delete(key)                            policy documented per backend
    get_object_meta(key)                   size / content type / etag / mtime
    get_upload_url(key)                    direct-transfer URLs, or
    get_download_url(key, filename)        UNSUPPORTED_OPERATION when the
    get_preview_url(key)                   backend has no public addressing

All operations return Result[T, StorageError]; no exceptions escape a
backend for I/O failures.

Author: Planetary AI Systems
License: MIT
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Dict, Iterator, Union

from contentstore.core import constants as C
from contentstore.core.errors import ErrorCode, StorageError
from contentstore.core.types import Err, Ok, Result, utcnow

# Upload payloads: raw bytes or any readable binary file-like object
Payload = Union[bytes, bytearray, memoryview, BinaryIO]


# =============================================================================
# VALUE TYPES
# =============================================================================
@dataclass(frozen=True, slots=True)
class UploadParams:
    """Parameters for upload_with_params."""

    object_key: str
    mime_type: str = ""


@dataclass(frozen=True, slots=True)
class BlobMeta:
    """
    Authoritative metadata for a stored blob.

    Attributes:
        key: Object key.
        size: Size in bytes as stored by the backend.
        content_type: MIME type recorded or detected by the backend.
        updated_at: Last modification time.
        etag: Entity tag or change validator ("" when unavailable).
        metadata: Backend-specific string metadata.
    """

    key: str
    size: int
    content_type: str = C.DEFAULT_MIME_TYPE
    updated_at: datetime = field(default_factory=utcnow)
    etag: str = ""
    metadata: Dict[str, str] = field(default_factory=dict)


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================
def read_payload(data: Payload) -> bytes:
    """Materialize a payload as bytes."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    if hasattr(data, "read"):
        content = data.read()
        if isinstance(content, str):
            raise TypeError("payload stream must be opened in binary mode")
        return bytes(content)
    raise TypeError(f"unsupported payload type: {type(data).__name__}")


def iter_payload(data: Payload, chunk_size: int = C.STREAM_CHUNK_BYTES) -> Iterator[bytes]:
    """Yield a payload in chunks without buffering file-like inputs whole."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        view = memoryview(data)
        for start in range(0, len(view), chunk_size):
            yield bytes(view[start : start + chunk_size])
        return
    if not hasattr(data, "read"):
        raise TypeError(f"unsupported payload type: {type(data).__name__}")
    while True:
        chunk = data.read(chunk_size)
        if not chunk:
            return
        if isinstance(chunk, str):
            raise TypeError("payload stream must be opened in binary mode")
        yield bytes(chunk)


# =============================================================================
# ABSTRACT BACKEND
# =============================================================================
class BlobStore(ABC):
    """Abstract blob storage backend."""

    kind: str = "abstract"

    @abstractmethod
    async def upload(self, key: str, data: Payload) -> Result[None, StorageError]:
        """Store bytes under key (last writer wins)."""
        ...

    @abstractmethod
    async def upload_with_params(
        self,
        data: Payload,
        params: UploadParams,
    ) -> Result[None, StorageError]:
        """Store bytes and persist the declared MIME type where supported."""
        ...

    @abstractmethod
    async def download(self, key: str) -> Result[BinaryIO, StorageError]:
        """Open a binary stream over the stored bytes. Caller closes it."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> Result[None, StorageError]:
        ...

    @abstractmethod
    async def get_object_meta(self, key: str) -> Result[BlobMeta, StorageError]:
        ...

    @abstractmethod
    async def get_upload_url(self, key: str) -> Result[str, StorageError]:
        ...

    @abstractmethod
    async def get_download_url(self, key: str, filename: str = "") -> Result[str, StorageError]:
        ...

    @abstractmethod
    async def get_preview_url(self, key: str) -> Result[str, StorageError]:
        ...

    async def exists(self, key: str) -> Result[bool, StorageError]:
        """Check existence via get_object_meta."""
        result = await self.get_object_meta(key)
        if result.is_ok():
            return Ok(True)
        if result.error.code is ErrorCode.NOT_FOUND:
            return Ok(False)
        return result

    async def connect(self) -> Result[None, StorageError]:
        """Acquire backend resources. Backends with nothing to open keep this no-op."""
        return Ok(None)

    async def close(self) -> None:
        """Release backend resources. Safe to call multiple times."""
        return None

    def _unsupported(self, operation: str, reason: str = "") -> Err[StorageError]:
        return Err(StorageError.unsupported(self.kind, operation, reason))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
