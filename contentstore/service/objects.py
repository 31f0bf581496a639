"""
Object Manager

Orchestrates the lifecycle of Objects: resolves the backend by the name
stored on the record, computes keys through the configured KeyGenerator,
delegates bytes to the backend and keeps status and metadata in the
repository consistent with what the backend actually holds.

Upload protocol:
    1. status -> UPLOADING (persisted)
    2. backend write (upload / upload_with_params)
         failure -> status FAILED, error returned
    3. backend get_object_meta on the same backend
         failure -> status stays UPLOADING, error returned; the caller
         retries with refresh_object_metadata without re-sending bytes
    4. ObjectMetadata persisted, status -> UPLOADED

Delete protocol:
    Backend delete runs first. A backend NOT_FOUND means the blob is
    already gone and the record is still removed; any other backend
    failure keeps the record so the delete can be retried.

Author: Planetary AI Systems
License: MIT
"""

from __future__ import annotations

import logging
from typing import BinaryIO, List, Optional, Tuple
from uuid import UUID

from contentstore.core.errors import ContentStoreError, ErrorCode, ObjectError
from contentstore.core.models import (
    Content,
    Object,
    ObjectMetadata,
    ObjectStatus,
)
from contentstore.core.status import can_download, can_transition_object, can_upload
from contentstore.core.types import Err, Ok, Result
from contentstore.objectkey import KeyGenerator, KeyMetadata, recommended_generator
from contentstore.repository.protocols import Repository
from contentstore.service.events import (
    ContentEvent,
    EventKind,
    EventSink,
    NoopEventSink,
    publish_safely,
)
from contentstore.storage.base import BlobStore, Payload, UploadParams
from contentstore.storage.registry import BackendRegistry

logger = logging.getLogger(__name__)


class ObjectManager:
    """
    Object create/upload/download/delete orchestration.

    Example:
        manager = ObjectManager(repo, registry)
        obj = (await manager.create_object(content.id, "local")).unwrap()
        await manager.upload_object(obj.id, b"bytes", mime_type="text/plain")
        stream = (await manager.download_object(obj.id)).unwrap()
    """

    __slots__ = ("_repo", "_registry", "_keys", "_events")

    def __init__(
        self,
        repository: Repository,
        registry: BackendRegistry,
        key_generator: Optional[KeyGenerator] = None,
        events: Optional[EventSink] = None,
    ) -> None:
        self._repo = repository
        self._registry = registry
        self._keys = key_generator or recommended_generator()
        self._events = events or NoopEventSink()

    @property
    def key_generator(self) -> KeyGenerator:
        return self._keys

    @property
    def registry(self) -> BackendRegistry:
        return self._registry

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_object(
        self,
        content_id: UUID,
        storage_backend_name: str,
        version: Optional[int] = None,
        object_key: Optional[str] = None,
        file_name: Optional[str] = None,
        object_type: str = "",
        mime_type: str = "",
    ) -> Result[Object, ContentStoreError]:
        """
        Create an empty object for ``content_id`` on the named backend.

        The key is generated (unless given) and persisted together with an
        initial ObjectMetadata before any backend I/O takes place.

        Args:
            version: Explicit version; the next free version when omitted.
            object_key: Use this key instead of generating one.
            file_name: Defaults to the content metadata's file name.

        Returns:
            Ok(object): New object in status CREATED
            Err(NOT_FOUND): Content or backend absent
        """
        op = "create_object"
        content_result = await self._repo.get_content(content_id)
        if content_result.is_err():
            return Err(content_result.error.wrap(op))
        content = content_result.unwrap()

        backend_result = self._registry.get(storage_backend_name)
        if backend_result.is_err():
            return Err(backend_result.error.wrap(op, content_id=str(content_id)))

        key_meta = await self._key_metadata(content, file_name, mime_type)
        obj = Object(
            content_id=content.id,
            storage_backend_name=storage_backend_name,
            file_name=key_meta.file_name,
            version=version or 0,
            object_type=object_type,
        )
        if object_key:
            obj.object_key = object_key
        else:
            try:
                obj.object_key = self._keys.generate_key(content.id, obj.id, key_meta)
            except ValueError as exc:
                return Err(ObjectError.invalid_argument(
                    f"key generation failed: {exc}", op, content_id=str(content.id),
                ))

        created = await self._repo.create_object(obj)
        if created.is_err():
            return Err(created.error.wrap(op))
        obj = created.unwrap()

        initial = ObjectMetadata(object_id=obj.id, mime_type=key_meta.content_type)
        meta_result = await self._repo.set_object_metadata(initial)
        if meta_result.is_err():
            await self._repo.delete_object(obj.id)
            return Err(meta_result.error.wrap(op, object_id=str(obj.id)))

        logger.info(
            "Created object %s for content %s on %s (key=%s, version=%d)",
            obj.id, content.id, storage_backend_name, obj.object_key, obj.version,
        )
        await self._emit(EventKind.OBJECT_CREATED, obj, backend=storage_backend_name)
        return Ok(obj)

    async def _key_metadata(
        self,
        content: Content,
        file_name: Optional[str],
        mime_type: str,
    ) -> KeyMetadata:
        """Collect placement hints from the content, its metadata and derivation."""
        name = file_name or ""
        content_type = mime_type
        meta_result = await self._repo.get_content_metadata(content.id)
        if meta_result.is_ok():
            meta = meta_result.unwrap()
            name = name or meta.file_name
            content_type = content_type or meta.mime_type

        derivation_type = variant = ""
        if content.is_derived:
            rel_result = await self._repo.get_derived_relationship_by_content_id(content.id)
            if rel_result.is_ok():
                rel = rel_result.unwrap()
                derivation_type, variant = rel.derivation_type, rel.variant

        return KeyMetadata(
            file_name=name,
            content_type=content_type,
            tenant_id=str(content.tenant_id),
            owner_id=str(content.owner_id),
            is_original=not content.is_derived,
            derivation_type=derivation_type,
            variant=variant,
            parent_content_id=content.parent_id,
        )

    # =========================================================================
    # UPLOAD / DOWNLOAD
    # =========================================================================

    async def upload_object(
        self,
        object_id: UUID,
        data: Payload,
        mime_type: Optional[str] = None,
    ) -> Result[Object, ContentStoreError]:
        """
        Write bytes for an object and confirm them against the backend.

        Returns:
            Ok(object): Object in status UPLOADED with refreshed metadata
            Err(INVALID_STATE): Object already uploaded, processed or deleted
            Err(BACKEND_FAILURE): Write failed (object FAILED) or metadata
                refresh failed (object stays UPLOADING)
        """
        op = "upload_object"
        resolved = await self._resolve(object_id, op)
        if resolved.is_err():
            return resolved
        obj, backend = resolved.unwrap()

        if not can_upload(obj.status):
            return Err(ObjectError.invalid_state("object", obj.id, obj.status.value, op))

        marked = await self._set_status(obj, ObjectStatus.UPLOADING)
        if marked.is_err():
            return Err(marked.error.wrap(op))
        obj = marked.unwrap()

        if mime_type:
            written = await backend.upload_with_params(
                data, UploadParams(object_key=obj.object_key, mime_type=mime_type),
            )
        else:
            written = await backend.upload(obj.object_key, data)

        if written.is_err():
            logger.warning(
                "Upload of object %s to %s failed: %s",
                obj.id, obj.storage_backend_name, written.error.message,
            )
            await self._set_status(obj, ObjectStatus.FAILED)
            return Err(written.error.wrap(op, object_id=str(obj.id)))

        refreshed = await self.refresh_object_metadata(obj.id)
        if refreshed.is_err():
            logger.warning(
                "Object %s written but metadata refresh failed; status left %s",
                obj.id, ObjectStatus.UPLOADING.value,
            )
            return Err(refreshed.error.wrap(op))

        current = await self._repo.get_object(obj.id)
        if current.is_err():
            return Err(current.error.wrap(op))
        obj = current.unwrap()

        meta = refreshed.unwrap()
        logger.info(
            "Uploaded object %s (%d bytes, %s) to %s",
            obj.id, meta.size_bytes, meta.mime_type, obj.storage_backend_name,
        )
        await self._emit(
            EventKind.OBJECT_UPLOADED, obj,
            size_bytes=meta.size_bytes, mime_type=meta.mime_type,
        )
        return Ok(obj)

    async def refresh_object_metadata(
        self,
        object_id: UUID,
    ) -> Result[ObjectMetadata, ContentStoreError]:
        """
        Re-read size, MIME type and etag from the backend and persist them.

        An object that was still CREATED, UPLOADING or FAILED is marked
        UPLOADED once the backend confirms the blob.
        """
        op = "refresh_object_metadata"
        resolved = await self._resolve(object_id, op)
        if resolved.is_err():
            return resolved
        obj, backend = resolved.unwrap()

        blob_result = await backend.get_object_meta(obj.object_key)
        if blob_result.is_err():
            return Err(blob_result.error.wrap(op, object_id=str(obj.id)))
        blob = blob_result.unwrap()

        extra = {}
        existing = await self._repo.get_object_metadata(obj.id)
        if existing.is_ok():
            extra = dict(existing.unwrap().metadata)
        extra.update(blob.metadata)

        metadata = ObjectMetadata(
            object_id=obj.id,
            size_bytes=blob.size,
            mime_type=blob.content_type,
            etag=blob.etag,
            metadata=extra,
        )
        stored = await self._repo.set_object_metadata(metadata)
        if stored.is_err():
            return Err(stored.error.wrap(op))

        if can_upload(obj.status):
            marked = await self._set_status(obj, ObjectStatus.UPLOADED)
            if marked.is_err():
                return Err(marked.error.wrap(op))
        return stored

    async def download_object(self, object_id: UUID) -> Result[BinaryIO, ContentStoreError]:
        """Open the object's bytes. The caller closes the returned stream."""
        op = "download_object"
        resolved = await self._resolve(object_id, op)
        if resolved.is_err():
            return resolved
        obj, backend = resolved.unwrap()

        if not can_download(obj.status):
            return Err(ObjectError.not_ready(obj.id, obj.status.value))

        stream = await backend.download(obj.object_key)
        if stream.is_err():
            return Err(stream.error.wrap(op, object_id=str(obj.id)))
        return stream

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete_object(self, object_id: UUID) -> Result[None, ContentStoreError]:
        """Delete the blob, then the object record and its metadata."""
        op = "delete_object"
        resolved = await self._resolve(object_id, op)
        if resolved.is_err():
            return resolved
        obj, backend = resolved.unwrap()

        removed = await backend.delete(obj.object_key)
        if removed.is_err():
            if removed.error.code is not ErrorCode.NOT_FOUND:
                logger.warning(
                    "Backend delete of object %s failed; record kept: %s",
                    obj.id, removed.error.message,
                )
                return Err(removed.error.wrap(op, object_id=str(obj.id)))
            logger.debug("Blob for object %s already absent from %s", obj.id, backend.kind)

        deleted = await self._repo.delete_object(obj.id)
        if deleted.is_err():
            return Err(deleted.error.wrap(op))

        logger.info("Deleted object %s from %s", obj.id, obj.storage_backend_name)
        await self._emit(EventKind.OBJECT_DELETED, obj)
        return Ok(None)

    # =========================================================================
    # URLS
    # =========================================================================

    async def get_upload_url(self, object_id: UUID) -> Result[str, ContentStoreError]:
        resolved = await self._resolve(object_id, "get_upload_url")
        if resolved.is_err():
            return resolved
        obj, backend = resolved.unwrap()
        return (await backend.get_upload_url(obj.object_key)).map_err(
            lambda e: e.wrap("get_upload_url", object_id=str(obj.id))
        )

    async def get_download_url(self, object_id: UUID) -> Result[str, ContentStoreError]:
        """Download URL carrying the object's file name for the attachment."""
        resolved = await self._resolve(object_id, "get_download_url")
        if resolved.is_err():
            return resolved
        obj, backend = resolved.unwrap()
        return (await backend.get_download_url(obj.object_key, obj.file_name)).map_err(
            lambda e: e.wrap("get_download_url", object_id=str(obj.id))
        )

    async def get_preview_url(self, object_id: UUID) -> Result[str, ContentStoreError]:
        resolved = await self._resolve(object_id, "get_preview_url")
        if resolved.is_err():
            return resolved
        obj, backend = resolved.unwrap()
        return (await backend.get_preview_url(obj.object_key)).map_err(
            lambda e: e.wrap("get_preview_url", object_id=str(obj.id))
        )

    # =========================================================================
    # RECORD ACCESS
    # =========================================================================

    async def get_object(self, object_id: UUID) -> Result[Object, ContentStoreError]:
        return await self._repo.get_object(object_id)

    async def get_objects_by_content_id(
        self,
        content_id: UUID,
    ) -> Result[List[Object], ContentStoreError]:
        """Objects of a content ordered by version."""
        return await self._repo.get_objects_by_content_id(content_id)

    async def update_object_status(
        self,
        object_id: UUID,
        status: ObjectStatus,
    ) -> Result[Object, ContentStoreError]:
        """
        Move an object to ``status`` (e.g. PROCESSING after a derivation
        job picks it up).

        Returns:
            Err(INVALID_STATE): Transition not allowed from the current status
        """
        current = await self._repo.get_object(object_id)
        if current.is_err():
            return Err(current.error.wrap("update_object_status"))
        obj = current.unwrap()
        if not can_transition_object(obj.status, status):
            return Err(ObjectError.invalid_state(
                "object", obj.id, obj.status.value, f"move to {status.value}",
            ))
        return await self._set_status(obj, status)

    async def set_object_metadata(
        self,
        metadata: ObjectMetadata,
    ) -> Result[ObjectMetadata, ContentStoreError]:
        return await self._repo.set_object_metadata(metadata)

    async def get_object_metadata(
        self,
        object_id: UUID,
    ) -> Result[ObjectMetadata, ContentStoreError]:
        return await self._repo.get_object_metadata(object_id)

    # =========================================================================
    # INTERNAL
    # =========================================================================

    async def _resolve(
        self,
        object_id: UUID,
        operation: str,
    ) -> Result[Tuple[Object, BlobStore], ContentStoreError]:
        """Load the object and the backend registered under its name."""
        obj_result = await self._repo.get_object(object_id)
        if obj_result.is_err():
            return Err(obj_result.error.wrap(operation))
        obj = obj_result.unwrap()
        backend_result = self._registry.get(obj.storage_backend_name)
        if backend_result.is_err():
            return Err(backend_result.error.wrap(operation, object_id=str(obj.id)))
        return Ok((obj, backend_result.unwrap()))

    async def _set_status(
        self,
        obj: Object,
        status: ObjectStatus,
    ) -> Result[Object, ContentStoreError]:
        if obj.status is status:
            return Ok(obj)
        previous = obj.status
        obj.status = status
        updated = await self._repo.update_object(obj)
        if updated.is_ok():
            logger.debug("Object %s: %s -> %s", obj.id, previous.value, status.value)
        return updated

    async def _emit(self, kind: EventKind, obj: Object, **data: object) -> None:
        event = ContentEvent(
            kind=kind,
            content_id=obj.content_id,
            object_id=obj.id,
            data={"object_key": obj.object_key, **data},
        )
        await publish_safely(self._events, event)


__all__ = ["ObjectManager"]
