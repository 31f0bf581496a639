"""
Content Service

Single entry point consumed by outer layers (HTTP handlers, CLIs, tool
adapters). Composes the repository, the derivation graph and the object
manager, and publishes lifecycle events.

Deletion:
    delete_content never cascades to children. A content with derived
    children is refused with INVALID_STATE; its objects are deleted
    (backend first) before the content row is removed.

Upload bookkeeping:
    After a confirmed upload the content metadata's file_size and
    mime_type are refreshed from the object metadata and the content
    moves to UPLOADED.

Author: Planetary AI Systems
License: MIT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, List, Optional, Sequence
from uuid import UUID

from contentstore.core import constants as C
from contentstore.core.config import ContentStoreConfig
from contentstore.core.errors import ContentError, ContentStoreError, ErrorCode
from contentstore.core.models import (
    Content,
    ContentAttributes,
    ContentMetadata,
    ContentStatus,
    DerivedContent,
    Object,
    ObjectMetadata,
    ObjectStatus,
)
from contentstore.core.status import can_transition_content
from contentstore.core.types import ContentHash, Err, Ok, Result
from contentstore.derivation import DerivationGraph
from contentstore.objectkey import KeyGenerator
from contentstore.observability.logging import LogLevel, setup_logging
from contentstore.repository import InMemoryRepository, ListDerivedContentParams, Repository
from contentstore.service.events import (
    ContentEvent,
    EventKind,
    EventSink,
    NoopEventSink,
    publish_safely,
)
from contentstore.service.objects import ObjectManager
from contentstore.storage.base import BlobStore, Payload, read_payload
from contentstore.storage.registry import BackendRegistry, build_registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UploadedContent:
    """Outcome of ContentService.upload_content."""

    content: Content
    object: Object
    metadata: ContentMetadata


class ContentService:
    """
    Facade over contents, derivations and objects.

    Example:
        service = ContentService()
        service.register_backend("local", FileSystemBackend(FileSystemConfig(base_dir=root)))
        content = (await service.create_content(owner, tenant)).unwrap()
        obj = (await service.create_object(content.id, "local", file_name="a.png")).unwrap()
        await service.upload_object(obj.id, data, mime_type="image/png")
    """

    __slots__ = ("_repo", "_registry", "_graph", "_objects", "_events", "_default_backend")

    def __init__(
        self,
        repository: Optional[Repository] = None,
        registry: Optional[BackendRegistry] = None,
        key_generator: Optional[KeyGenerator] = None,
        events: Optional[EventSink] = None,
        max_depth: int = C.MAX_DERIVATION_DEPTH,
        default_backend: str = C.DEFAULT_BACKEND_NAME,
    ) -> None:
        self._repo = repository if repository is not None else InMemoryRepository()
        self._registry = registry if registry is not None else BackendRegistry()
        self._events = events or NoopEventSink()
        self._graph = DerivationGraph(self._repo, max_depth=max_depth)
        self._objects = ObjectManager(self._repo, self._registry, key_generator, self._events)
        self._default_backend = default_backend

    @classmethod
    async def from_config(
        cls,
        config: ContentStoreConfig,
        repository: Optional[Repository] = None,
        events: Optional[EventSink] = None,
        configure_logging: bool = True,
    ) -> ContentService:
        """
        Build a service with every configured backend connected and registered.

        Unless ``configure_logging`` is false, the root logger is set up
        from ``log_level`` and ``log_json`` first.

        Raises:
            ValueError: Invalid configuration.
            StorageError: A backend failed to connect.
        """
        valid = config.validate()
        if valid.is_err():
            raise ValueError(valid.error)
        if configure_logging:
            setup_logging(LogLevel.parse(config.log_level), json_output=config.log_json)
        registry = await build_registry(config.backends)
        return cls(
            repository=repository,
            registry=registry,
            key_generator=config.create_key_generator(),
            events=events,
            max_depth=config.max_derivation_depth,
            default_backend=config.default_backend,
        )

    async def close(self) -> None:
        await self._registry.close_all()

    @property
    def repository(self) -> Repository:
        return self._repo

    @property
    def registry(self) -> BackendRegistry:
        return self._registry

    @property
    def graph(self) -> DerivationGraph:
        return self._graph

    @property
    def objects(self) -> ObjectManager:
        return self._objects

    def register_backend(self, name: str, backend: BlobStore) -> Result[None, ContentStoreError]:
        return self._registry.register(name, backend)

    # =========================================================================
    # CONTENTS
    # =========================================================================

    async def create_content(
        self,
        owner_id: UUID,
        tenant_id: UUID,
        attrs: Optional[ContentAttributes] = None,
        metadata: Optional[ContentMetadata] = None,
    ) -> Result[Content, ContentStoreError]:
        """
        Create a root content, optionally with its metadata.

        ``metadata`` is copied before its content_id is set. If storing it
        fails the error is returned but the content stays created, with no
        metadata and no CONTENT_CREATED event.
        """
        created = await self._graph.create_root(owner_id, tenant_id, attrs)
        if created.is_err():
            return Err(created.error.wrap("create_content"))
        content = created.unwrap()

        if metadata is not None:
            metadata = metadata.copy()
            metadata.content_id = content.id
            stored = await self._repo.set_content_metadata(metadata)
            if stored.is_err():
                return Err(stored.error.wrap("create_content", id=str(content.id)))

        logger.info("Created content %s (tenant=%s)", content.id, tenant_id)
        await self._emit(EventKind.CONTENT_CREATED, content)
        return Ok(content)

    async def create_derived_content(
        self,
        parent_id: UUID,
        owner_id: UUID,
        tenant_id: UUID,
        derivation_type: str,
        attrs: Optional[ContentAttributes] = None,
        variant: str = "",
        derivation_params: Optional[Dict[str, Any]] = None,
        processing_metadata: Optional[Dict[str, Any]] = None,
        metadata: Optional[ContentMetadata] = None,
    ) -> Result[Content, ContentStoreError]:
        """
        Create a content derived from ``parent_id``.

        Returns:
            Err(NOT_FOUND): Parent absent
            Err(DEPTH_EXCEEDED): Parent already at the maximum level
        """
        created = await self._graph.create_derived(
            parent_id,
            owner_id,
            tenant_id,
            attrs=attrs,
            derivation_type=derivation_type,
            variant=variant,
            derivation_params=derivation_params,
            processing_metadata=processing_metadata,
            metadata=metadata,
        )
        if created.is_err():
            return Err(created.error.wrap("create_derived_content", parent_id=str(parent_id)))
        content = created.unwrap()
        logger.info(
            "Created derived content %s from %s (level=%d, type=%s)",
            content.id, parent_id, content.derivation_level, derivation_type,
        )
        await self._emit(
            EventKind.CONTENT_CREATED, content,
            parent_id=str(parent_id), derivation_type=derivation_type.strip().lower(),
        )
        return Ok(content)

    async def get_content(self, content_id: UUID) -> Result[Content, ContentStoreError]:
        return await self._repo.get_content(content_id)

    async def update_content(self, content: Content) -> Result[Content, ContentStoreError]:
        """
        Persist descriptive and status changes.

        Tree position (parent, level, derivation type) cannot change.
        """
        stored = await self._repo.get_content(content.id)
        if stored.is_err():
            return Err(stored.error.wrap("update_content"))
        previous = stored.unwrap().status
        if not can_transition_content(previous, content.status):
            return Err(ContentError.invalid_state(
                "content", content.id, previous.value, f"move to {content.status.value}",
            ))

        updated = await self._repo.update_content(content)
        if updated.is_err():
            return Err(updated.error.wrap("update_content"))
        content = updated.unwrap()

        await self._emit(EventKind.CONTENT_UPDATED, content)
        if previous is not content.status:
            await self._emit(
                EventKind.CONTENT_STATUS_CHANGED, content,
                previous=previous.value, status=content.status.value,
            )
        return Ok(content)

    async def update_content_status(
        self,
        content_id: UUID,
        status: ContentStatus,
    ) -> Result[Content, ContentStoreError]:
        current = await self._repo.get_content(content_id)
        if current.is_err():
            return Err(current.error.wrap("update_content_status"))
        content = current.unwrap()
        if content.status is status:
            return Ok(content)
        content.status = status
        return await self.update_content(content)

    async def delete_content(self, content_id: UUID) -> Result[None, ContentStoreError]:
        """
        Delete a content and its objects.

        Returns:
            Err(INVALID_STATE): Content still has derived children
            Err(BACKEND_FAILURE): An object could not be removed; the
                content and the remaining objects are kept
        """
        op = "delete_content"
        current = await self._repo.get_content(content_id)
        if current.is_err():
            return Err(current.error.wrap(op))
        content = current.unwrap()

        children = await self._repo.get_by_parent_id(content_id)
        if children.is_err():
            return Err(children.error.wrap(op))
        if children.unwrap():
            return Err(ContentError.has_children(content_id, len(children.unwrap())))

        objects = await self._repo.get_objects_by_content_id(content_id)
        if objects.is_err():
            return Err(objects.error.wrap(op))
        for obj in objects.unwrap():
            removed = await self._objects.delete_object(obj.id)
            if removed.is_err():
                return Err(removed.error.wrap(op, id=str(content_id)))

        deleted = await self._repo.delete_content(content_id)
        if deleted.is_err():
            return Err(deleted.error.wrap(op))

        logger.info("Deleted content %s", content_id)
        await self._emit(EventKind.CONTENT_DELETED, content)
        return Ok(None)

    async def list_content(
        self,
        owner_id: Optional[UUID] = None,
        tenant_id: Optional[UUID] = None,
    ) -> Result[List[Content], ContentStoreError]:
        """Contents filtered by owner and/or tenant, oldest first."""
        return await self._repo.list_content(owner_id=owner_id, tenant_id=tenant_id)

    async def set_content_metadata(
        self,
        metadata: ContentMetadata,
    ) -> Result[ContentMetadata, ContentStoreError]:
        stored = await self._repo.set_content_metadata(metadata)
        if stored.is_ok():
            content = await self._repo.get_content(metadata.content_id)
            if content.is_ok():
                await self._emit(EventKind.CONTENT_UPDATED, content.unwrap(), metadata=True)
        return stored

    async def get_content_metadata(
        self,
        content_id: UUID,
    ) -> Result[ContentMetadata, ContentStoreError]:
        return await self._repo.get_content_metadata(content_id)

    # =========================================================================
    # DERIVATION QUERIES
    # =========================================================================

    async def get_direct_children(self, parent_id: UUID) -> Result[List[Content], ContentStoreError]:
        return await self._graph.get_direct_children(parent_id)

    async def get_tree(
        self,
        root_id: UUID,
        max_depth: int = C.DEFAULT_TREE_DEPTH,
    ) -> Result[List[Content], ContentStoreError]:
        return await self._graph.get_tree(root_id, max_depth)

    async def get_ancestors(self, content_id: UUID) -> Result[List[Content], ContentStoreError]:
        return await self._graph.get_ancestors(content_id)

    async def list_derived_content(
        self,
        params: ListDerivedContentParams,
    ) -> Result[List[DerivedContent], ContentStoreError]:
        return await self._repo.list_derived_content(params)

    async def count_derived_content(
        self,
        params: ListDerivedContentParams,
    ) -> Result[int, ContentStoreError]:
        return await self._repo.count_derived_content(params)

    async def get_derived_relationship(
        self,
        content_id: UUID,
    ) -> Result[DerivedContent, ContentStoreError]:
        return await self._graph.get_relationship(content_id)

    # =========================================================================
    # OBJECTS
    # =========================================================================

    async def create_object(
        self,
        content_id: UUID,
        storage_backend_name: Optional[str] = None,
        version: Optional[int] = None,
        object_key: Optional[str] = None,
        file_name: Optional[str] = None,
        object_type: str = "",
        mime_type: str = "",
    ) -> Result[Object, ContentStoreError]:
        """Create an empty object on the named (or default) backend."""
        return await self._objects.create_object(
            content_id,
            storage_backend_name or self._default_backend,
            version=version,
            object_key=object_key,
            file_name=file_name,
            object_type=object_type,
            mime_type=mime_type,
        )

    async def upload_object(
        self,
        object_id: UUID,
        data: Payload,
        mime_type: Optional[str] = None,
    ) -> Result[Object, ContentStoreError]:
        """Upload bytes, then sync the owning content's metadata and status."""
        uploaded = await self._objects.upload_object(object_id, data, mime_type)
        if uploaded.is_err():
            return uploaded
        obj = uploaded.unwrap()
        synced = await self._sync_content_after_upload(obj)
        if synced.is_err():
            return Err(synced.error.wrap("upload_object", object_id=str(obj.id)))
        return uploaded

    async def refresh_object_metadata(
        self,
        object_id: UUID,
    ) -> Result[ObjectMetadata, ContentStoreError]:
        """
        Confirm bytes written out of band (e.g. via an upload URL) or retry
        a metadata refresh that failed after a successful write.
        """
        refreshed = await self._objects.refresh_object_metadata(object_id)
        if refreshed.is_err():
            return refreshed
        obj = await self._objects.get_object(object_id)
        if obj.is_err():
            return obj
        synced = await self._sync_content_after_upload(obj.unwrap())
        if synced.is_err():
            return Err(synced.error.wrap("refresh_object_metadata"))
        return refreshed

    async def download_object(self, object_id: UUID) -> Result[BinaryIO, ContentStoreError]:
        return await self._objects.download_object(object_id)

    async def delete_object(self, object_id: UUID) -> Result[None, ContentStoreError]:
        return await self._objects.delete_object(object_id)

    async def get_object(self, object_id: UUID) -> Result[Object, ContentStoreError]:
        return await self._objects.get_object(object_id)

    async def get_objects_by_content_id(
        self,
        content_id: UUID,
    ) -> Result[List[Object], ContentStoreError]:
        return await self._objects.get_objects_by_content_id(content_id)

    async def update_object_status(
        self,
        object_id: UUID,
        status: ObjectStatus,
    ) -> Result[Object, ContentStoreError]:
        return await self._objects.update_object_status(object_id, status)

    async def get_object_metadata(
        self,
        object_id: UUID,
    ) -> Result[ObjectMetadata, ContentStoreError]:
        return await self._objects.get_object_metadata(object_id)

    async def get_upload_url(self, object_id: UUID) -> Result[str, ContentStoreError]:
        return await self._objects.get_upload_url(object_id)

    async def get_download_url(self, object_id: UUID) -> Result[str, ContentStoreError]:
        return await self._objects.get_download_url(object_id)

    async def get_preview_url(self, object_id: UUID) -> Result[str, ContentStoreError]:
        return await self._objects.get_preview_url(object_id)

    # =========================================================================
    # CONVENIENCE
    # =========================================================================

    async def upload_content(
        self,
        owner_id: UUID,
        tenant_id: UUID,
        data: Payload,
        file_name: str,
        mime_type: str = "",
        storage_backend_name: Optional[str] = None,
        attrs: Optional[ContentAttributes] = None,
        tags: Sequence[str] = (),
    ) -> Result[UploadedContent, ContentStoreError]:
        """
        Create a root content with metadata, one object, and upload it.

        The checksum (sha256) is computed here; size and MIME type come
        from the backend after the upload.
        """
        payload = read_payload(data)
        digest = ContentHash.compute(payload)
        metadata = ContentMetadata(
            content_id=UUID(int=0),
            tags=list(tags),
            file_name=file_name,
            mime_type=mime_type,
            checksum=digest.to_hex(),
            checksum_algorithm=ContentHash.ALGORITHM,
        )
        attrs = attrs or ContentAttributes(name=file_name)

        created = await self.create_content(owner_id, tenant_id, attrs, metadata)
        if created.is_err():
            return created
        content = created.unwrap()

        obj = await self.create_object(
            content.id, storage_backend_name, file_name=file_name, mime_type=mime_type,
        )
        if obj.is_err():
            return obj

        uploaded = await self.upload_object(obj.unwrap().id, payload, mime_type or None)
        if uploaded.is_err():
            return uploaded

        content_result = await self._repo.get_content(content.id)
        meta_result = await self._repo.get_content_metadata(content.id)
        if content_result.is_err():
            return content_result
        if meta_result.is_err():
            return meta_result
        return Ok(UploadedContent(
            content=content_result.unwrap(),
            object=uploaded.unwrap(),
            metadata=meta_result.unwrap(),
        ))

    # =========================================================================
    # INTERNAL
    # =========================================================================

    async def _sync_content_after_upload(self, obj: Object) -> Result[None, ContentStoreError]:
        object_meta = await self._repo.get_object_metadata(obj.id)
        if object_meta.is_err():
            return object_meta
        size, mime = object_meta.unwrap().size_bytes, object_meta.unwrap().mime_type

        existing = await self._repo.get_content_metadata(obj.content_id)
        if existing.is_ok():
            metadata = existing.unwrap()
        elif existing.error.code is ErrorCode.NOT_FOUND:
            metadata = ContentMetadata(content_id=obj.content_id, file_name=obj.file_name)
        else:
            return existing
        metadata.file_size = size
        metadata.mime_type = mime or metadata.mime_type
        stored = await self._repo.set_content_metadata(metadata)
        if stored.is_err():
            return stored

        status = await self.update_content_status(obj.content_id, ContentStatus.UPLOADED)
        if status.is_err():
            return status
        return Ok(None)

    async def _emit(self, kind: EventKind, content: Content, **data: Any) -> None:
        event = ContentEvent(
            kind=kind,
            content_id=content.id,
            tenant_id=content.tenant_id,
            data=data,
        )
        await publish_safely(self._events, event)


__all__ = ["ContentService", "UploadedContent"]
