"""
S3-Compatible Blob Backend
==========================

Blob backend for AWS S3, MinIO, Cloudflare R2, and other S3-compatible
services, built on aioboto3.

Design Principles:
------------------
1. **Result Monad**: No exceptions for control flow
2. **Presigned URLs**: Direct client uploads/downloads, time-limited
3. **Server-Side Encryption**: Optional AES256 or aws:kms on every PUT
4. **Path-Style Addressing**: For non-AWS endpoints such as MinIO

Operation mapping:
------------------
| Contract           | S3 call                    |
|--------------------|----------------------------|
| upload             | PutObject                  |
| download           | GetObject                  |
| delete             | DeleteObject (idempotent)  |
| get_object_meta    | HeadObject                 |
| get_upload_url     | presigned PutObject        |
| get_download_url   | presigned GetObject, attachment disposition |
| get_preview_url    | presigned GetObject, inline disposition     |

Delete policy: idempotent. Deleting a missing key succeeds, matching S3.

Thread Safety:
--------------
- aioboto3 clients are safe for concurrent async operations
- No shared mutable state beyond the client handle

Author: Planetary AI Systems
License: MIT
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING, Any, BinaryIO, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from contentstore.core import constants as C
from contentstore.core.errors import StorageError
from contentstore.core.types import Err, Ok, Result, utcnow
from contentstore.storage.base import BlobMeta, BlobStore, Payload, UploadParams, read_payload
from contentstore.storage.config import S3Config

if TYPE_CHECKING:
    from types_aiobotocore_s3 import S3Client

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})
_BUCKET_EXISTS_CODES = frozenset({"BucketAlreadyOwnedByYou", "BucketAlreadyExists"})

# Errors raised by the SDK for transport and service failures
_SDK_ERRORS = (ClientError, BotoCoreError, OSError)


def _error_code(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", ""))
    return ""


def _is_not_found(exc: BaseException) -> bool:
    if not isinstance(exc, ClientError):
        return False
    if _error_code(exc) in _NOT_FOUND_CODES:
        return True
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return status == 404


class S3Backend(BlobStore):
    """
    S3-compatible blob backend.

    Example:
        >>> backend = S3Backend(S3Config(bucket_name="content"))
        >>> await backend.connect()
        >>> await backend.upload("originals/objects/ab/cd12", b"...")
        >>> await backend.close()

    A pre-built client can be injected (``client=``) for tests or for
    sharing one aioboto3 client across several backends; the backend does
    not close injected clients.
    """

    kind = "s3"

    __slots__ = ("_config", "_client", "_session", "_owns_client")

    def __init__(self, config: S3Config, client: Any = None) -> None:
        """
        Args:
            config: S3 connection configuration.
            client: Optional already-entered aioboto3 S3 client.

        Note:
            Call ``connect()`` before performing operations.
        """
        self._config = config
        self._client: Optional[S3Client] = client
        self._session: Any = None
        self._owns_client = client is None

    @property
    def config(self) -> S3Config:
        return self._config

    @property
    def bucket(self) -> str:
        return self._config.bucket_name

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    async def connect(self) -> Result[None, StorageError]:
        """
        Create the aioboto3 client and verify (or create) the bucket.

        Returns:
            Ok(None) on success, Err(StorageError) on failure.
        """
        if self._client is None:
            import aioboto3

            self._session = aioboto3.Session(**self._config.get_session_kwargs())
            try:
                self._client = await self._session.client(
                    "s3", **self._config.get_client_kwargs()
                ).__aenter__()
            except _SDK_ERRORS as e:
                return Err(StorageError.backend_failure(self.kind, "connect", self.bucket, cause=e))
            self._owns_client = True

        if self._config.create_bucket_if_not_exist:
            return await self._ensure_bucket()
        return Ok(None)

    async def _ensure_bucket(self) -> Result[None, StorageError]:
        try:
            await self._client.head_bucket(Bucket=self.bucket)
            return Ok(None)
        except ClientError as e:
            if not _is_not_found(e) and _error_code(e) != "NoSuchBucket":
                return Err(StorageError.backend_failure(self.kind, "head_bucket", self.bucket, cause=e))
        except _SDK_ERRORS as e:
            return Err(StorageError.backend_failure(self.kind, "head_bucket", self.bucket, cause=e))

        create_kwargs: Dict[str, Any] = {"Bucket": self.bucket}
        # us-east-1 rejects an explicit LocationConstraint
        if self._config.region != C.S3_DEFAULT_REGION:
            create_kwargs["CreateBucketConfiguration"] = {
                "LocationConstraint": self._config.region,
            }
        try:
            await self._client.create_bucket(**create_kwargs)
            logger.info("Created bucket %s in %s", self.bucket, self._config.region)
        except ClientError as e:
            if _error_code(e) not in _BUCKET_EXISTS_CODES:
                return Err(StorageError.backend_failure(self.kind, "create_bucket", self.bucket, cause=e))
        except _SDK_ERRORS as e:
            return Err(StorageError.backend_failure(self.kind, "create_bucket", self.bucket, cause=e))
        return Ok(None)

    async def close(self) -> None:
        """
        Close the S3 client and release resources.

        Safe to call multiple times.
        """
        if self._client is not None and self._owns_client:
            await self._client.__aexit__(None, None, None)
        self._client = None

    def _not_connected(self, operation: str, key: str) -> Err[StorageError]:
        return Err(StorageError.backend_failure(
            self.kind, operation, key, cause=RuntimeError("S3 backend not connected"),
        ))

    # -------------------------------------------------------------------------
    # CORE OPERATIONS
    # -------------------------------------------------------------------------

    async def _put(self, key: str, data: Payload, mime_type: str) -> Result[None, StorageError]:
        if self._client is None:
            return self._not_connected("upload", key)
        try:
            body = read_payload(data)
        except (OSError, TypeError) as e:
            return Err(StorageError.backend_failure(self.kind, "upload", key, cause=e))

        put_kwargs: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body,
            "ContentType": mime_type or C.DEFAULT_MIME_TYPE,
            **self._config.sse_params(),
        }
        try:
            await self._client.put_object(**put_kwargs)
        except _SDK_ERRORS as e:
            return Err(StorageError.backend_failure(self.kind, "upload", key, cause=e))
        return Ok(None)

    async def upload(self, key: str, data: Payload) -> Result[None, StorageError]:
        return await self._put(key, data, C.DEFAULT_MIME_TYPE)

    async def upload_with_params(
        self,
        data: Payload,
        params: UploadParams,
    ) -> Result[None, StorageError]:
        return await self._put(params.object_key, data, params.mime_type)

    async def download(self, key: str) -> Result[BinaryIO, StorageError]:
        """
        Download an object into an in-memory stream.

        Complexity: O(n) where n = object size.
        """
        if self._client is None:
            return self._not_connected("download", key)
        try:
            response = await self._client.get_object(Bucket=self.bucket, Key=key)
            async with response["Body"] as stream:
                data = await stream.read()
        except ClientError as e:
            if _is_not_found(e):
                return Err(StorageError.key_not_found(self.kind, key, "download"))
            return Err(StorageError.backend_failure(self.kind, "download", key, cause=e))
        except _SDK_ERRORS as e:
            return Err(StorageError.backend_failure(self.kind, "download", key, cause=e))
        return Ok(io.BytesIO(data))

    async def delete(self, key: str) -> Result[None, StorageError]:
        if self._client is None:
            return self._not_connected("delete", key)
        try:
            await self._client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                return Ok(None)
            return Err(StorageError.backend_failure(self.kind, "delete", key, cause=e))
        except _SDK_ERRORS as e:
            return Err(StorageError.backend_failure(self.kind, "delete", key, cause=e))
        return Ok(None)

    async def get_object_meta(self, key: str) -> Result[BlobMeta, StorageError]:
        """
        Get object metadata without downloading content.

        Complexity: O(1) - metadata only.
        """
        if self._client is None:
            return self._not_connected("get_object_meta", key)
        try:
            response = await self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                return Err(StorageError.key_not_found(self.kind, key, "get_object_meta"))
            return Err(StorageError.backend_failure(self.kind, "get_object_meta", key, cause=e))
        except _SDK_ERRORS as e:
            return Err(StorageError.backend_failure(self.kind, "get_object_meta", key, cause=e))

        content_type = response.get("ContentType") or C.DEFAULT_MIME_TYPE
        metadata = {str(k): str(v) for k, v in (response.get("Metadata") or {}).items()}
        metadata["content_type"] = content_type
        if response.get("ServerSideEncryption"):
            metadata["server_side_encryption"] = str(response["ServerSideEncryption"])
        return Ok(BlobMeta(
            key=key,
            size=int(response.get("ContentLength", 0)),
            content_type=content_type,
            updated_at=response.get("LastModified") or utcnow(),
            etag=str(response.get("ETag", "")).strip('"'),
            metadata=metadata,
        ))

    # -------------------------------------------------------------------------
    # PRESIGNED URLS
    # -------------------------------------------------------------------------

    async def _presign(
        self,
        operation: str,
        client_method: str,
        key: str,
        extra_params: Optional[Dict[str, str]] = None,
    ) -> Result[str, StorageError]:
        if self._client is None:
            return self._not_connected(operation, key)
        params: Dict[str, Any] = {"Bucket": self.bucket, "Key": key}
        if extra_params:
            params.update(extra_params)
        try:
            url = await self._client.generate_presigned_url(
                ClientMethod=client_method,
                Params=params,
                ExpiresIn=self._config.presign_duration_seconds,
            )
        except _SDK_ERRORS as e:
            return Err(StorageError.backend_failure(self.kind, operation, key, cause=e))
        return Ok(url)

    async def get_upload_url(self, key: str) -> Result[str, StorageError]:
        return await self._presign("get_upload_url", "put_object", key)

    async def get_download_url(self, key: str, filename: str = "") -> Result[str, StorageError]:
        extra = None
        if filename:
            safe_name = filename.replace('"', "")
            extra = {"ResponseContentDisposition": f'attachment; filename="{safe_name}"'}
        return await self._presign("get_download_url", "get_object", key, extra)

    async def get_preview_url(self, key: str) -> Result[str, StorageError]:
        return await self._presign(
            "get_preview_url", "get_object", key, {"ResponseContentDisposition": "inline"},
        )

    def __repr__(self) -> str:
        return f"S3Backend(bucket={self.bucket!r}, region={self._config.region!r})"
