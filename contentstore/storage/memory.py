"""
In-Memory Blob Backend

Concurrency-safe key -> bytes map with a parallel key -> MIME type map.
Used for tests and ephemeral demos; it has no externally reachable
address, so URL issuance always fails with UNSUPPORTED_OPERATION.

Delete policy: strict. Deleting a missing key returns NOT_FOUND.
"""

from __future__ import annotations

import asyncio
import hashlib
import io
from datetime import datetime
from typing import BinaryIO, Dict

from contentstore.core import constants as C
from contentstore.core.errors import StorageError
from contentstore.core.types import Err, Ok, Result, utcnow
from contentstore.storage.base import BlobMeta, BlobStore, Payload, UploadParams, read_payload


class MemoryBackend(BlobStore):
    """
    In-memory blob store.

    Example:
        backend = MemoryBackend()
        await backend.upload("k1", b"Hello, World!")
        meta = (await backend.get_object_meta("k1")).unwrap()
        assert meta.size == 13
    """

    kind = "memory"

    __slots__ = ("_objects", "_mime_types", "_updated", "_lock")

    def __init__(self) -> None:
        self._objects: Dict[str, bytes] = {}
        self._mime_types: Dict[str, str] = {}
        self._updated: Dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._objects)

    async def upload(self, key: str, data: Payload) -> Result[None, StorageError]:
        try:
            content = read_payload(data)
        except (OSError, TypeError) as e:
            return Err(StorageError.backend_failure(self.kind, "upload", key, cause=e))
        async with self._lock:
            self._objects[key] = content
            self._mime_types.setdefault(key, C.DEFAULT_MIME_TYPE)
            self._updated[key] = utcnow()
        return Ok(None)

    async def upload_with_params(
        self,
        data: Payload,
        params: UploadParams,
    ) -> Result[None, StorageError]:
        key = params.object_key
        try:
            content = read_payload(data)
        except (OSError, TypeError) as e:
            return Err(StorageError.backend_failure(self.kind, "upload", key, cause=e))
        async with self._lock:
            self._objects[key] = content
            self._mime_types[key] = params.mime_type or C.DEFAULT_MIME_TYPE
            self._updated[key] = utcnow()
        return Ok(None)

    async def download(self, key: str) -> Result[BinaryIO, StorageError]:
        async with self._lock:
            content = self._objects.get(key)
        if content is None:
            return Err(StorageError.key_not_found(self.kind, key, "download"))
        return Ok(io.BytesIO(content))

    async def delete(self, key: str) -> Result[None, StorageError]:
        async with self._lock:
            if key not in self._objects:
                return Err(StorageError.key_not_found(self.kind, key, "delete"))
            del self._objects[key]
            self._mime_types.pop(key, None)
            self._updated.pop(key, None)
        return Ok(None)

    async def get_object_meta(self, key: str) -> Result[BlobMeta, StorageError]:
        async with self._lock:
            content = self._objects.get(key)
            mime_type = self._mime_types.get(key, C.DEFAULT_MIME_TYPE)
            updated_at = self._updated.get(key)
        if content is None:
            return Err(StorageError.key_not_found(self.kind, key, "get_object_meta"))
        return Ok(BlobMeta(
            key=key,
            size=len(content),
            content_type=mime_type,
            updated_at=updated_at or utcnow(),
            etag=hashlib.md5(content).hexdigest(),
            metadata={"mime_type": mime_type},
        ))

    async def get_upload_url(self, key: str) -> Result[str, StorageError]:
        return self._unsupported("get_upload_url", "memory backend has no public address")

    async def get_download_url(self, key: str, filename: str = "") -> Result[str, StorageError]:
        return self._unsupported("get_download_url", "memory backend has no public address")

    async def get_preview_url(self, key: str) -> Result[str, StorageError]:
        return self._unsupported("get_preview_url", "memory backend has no public address")

    def __repr__(self) -> str:
        return f"MemoryBackend(objects={len(self._objects)})"
