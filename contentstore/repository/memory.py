"""
In-Memory Repository

Reference implementation of the Repository protocol for development,
tests and single-process deployments.

Concurrency:
    One asyncio.Lock guards all writes. Reads never await while touching
    the maps, so on a single event loop they always observe a consistent
    snapshot without taking the lock.

    create_derived_content performs the parent lookup, the depth check and
    the insert under the write lock: concurrent derivations from a parent
    at the cap are all rejected, never admitted past it.

Complexity:
    get/create/update/delete: O(1)
    get_by_parent_id: O(children)
    get_derived_content_tree: O(nodes in tree)
    list_content / list_derived_content: O(n) scan
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Dict, List, Optional
from uuid import UUID

from contentstore.core import constants as C
from contentstore.core.errors import ContentError, ContentStoreError, ObjectError
from contentstore.core.models import (
    Content,
    ContentMetadata,
    ContentStatus,
    DerivationType,
    DerivedContent,
    Object,
    ObjectMetadata,
    ObjectStatus,
)
from contentstore.core.types import Err, Ok, Result, utcnow
from contentstore.repository.protocols import ListDerivedContentParams


class InMemoryRepository:
    """
    Dict-backed repository.

    Example:
        repo = InMemoryRepository()
        root = (await repo.create_content(Content(tenant_id=t, owner_id=o))).unwrap()
    """

    __slots__ = (
        "_contents",
        "_content_meta",
        "_relationships",
        "_children",
        "_objects",
        "_object_meta",
        "_last_version",
        "_lock",
    )

    def __init__(self) -> None:
        self._contents: Dict[UUID, Content] = {}
        self._content_meta: Dict[UUID, ContentMetadata] = {}
        self._relationships: Dict[UUID, DerivedContent] = {}  # child id -> record
        self._children: Dict[UUID, Dict[UUID, None]] = {}  # parent id -> ordered child ids
        self._objects: Dict[UUID, Object] = {}
        self._object_meta: Dict[UUID, ObjectMetadata] = {}
        self._last_version: Dict[UUID, int] = {}  # content id -> highest object version
        self._lock = asyncio.Lock()

    # =========================================================================
    # CONTENTS
    # =========================================================================

    async def create_content(self, content: Content) -> Result[Content, ContentStoreError]:
        async with self._lock:
            if content.id in self._contents:
                return Err(ContentError.already_exists("content", content.id, "create_content"))
            if content.parent_id is not None:
                return Err(ContentError.invalid_argument(
                    "contents with a parent must be created with create_derived_content",
                    "create_content",
                ))
            content.derivation_level = 0
            content.derivation_type = DerivationType.ORIGINAL
            self._contents[content.id] = content.copy()
        return Ok(content.copy())

    async def create_derived_content(
        self,
        content: Content,
        relationship: DerivedContent,
        max_depth: int = C.MAX_DERIVATION_DEPTH,
    ) -> Result[Content, ContentStoreError]:
        async with self._lock:
            parent = self._contents.get(relationship.parent_id)
            if parent is None:
                return Err(ContentError.not_found("parent content", relationship.parent_id, "create_derived"))
            if parent.derivation_level >= max_depth:
                return Err(ContentError.depth_exceeded(parent.id, parent.derivation_level, max_depth))
            if content.id in self._contents:
                return Err(ContentError.already_exists("content", content.id, "create_derived"))

            content.parent_id = parent.id
            content.derivation_level = parent.derivation_level + 1
            content.derivation_type = DerivationType.DERIVED
            relationship.content_id = content.id

            self._contents[content.id] = content.copy()
            self._relationships[content.id] = relationship.copy()
            self._children.setdefault(parent.id, {})[content.id] = None
        return Ok(content.copy())

    async def get_content(self, content_id: UUID) -> Result[Content, ContentStoreError]:
        content = self._contents.get(content_id)
        if content is None:
            return Err(ContentError.not_found("content", content_id, "get_content"))
        return Ok(content.copy())

    async def update_content(self, content: Content) -> Result[Content, ContentStoreError]:
        async with self._lock:
            stored = self._contents.get(content.id)
            if stored is None:
                return Err(ContentError.not_found("content", content.id, "update_content"))
            # tree position is immutable after creation
            content.parent_id = stored.parent_id
            content.derivation_level = stored.derivation_level
            content.derivation_type = stored.derivation_type
            content.created_at = stored.created_at
            content.touch()
            self._contents[content.id] = content.copy()
            rel = self._relationships.get(content.id)
            if rel is not None and rel.status is not content.status:
                rel.status = content.status
                rel.updated_at = content.updated_at
        return Ok(content.copy())

    async def delete_content(self, content_id: UUID) -> Result[None, ContentStoreError]:
        async with self._lock:
            content = self._contents.pop(content_id, None)
            if content is None:
                return Err(ContentError.not_found("content", content_id, "delete_content"))
            self._content_meta.pop(content_id, None)
            self._relationships.pop(content_id, None)
            self._last_version.pop(content_id, None)
            if content.parent_id is not None:
                siblings = self._children.get(content.parent_id)
                if siblings is not None:
                    siblings.pop(content_id, None)
                    if not siblings:
                        del self._children[content.parent_id]
        return Ok(None)

    async def list_content(
        self,
        owner_id: Optional[UUID] = None,
        tenant_id: Optional[UUID] = None,
    ) -> Result[List[Content], ContentStoreError]:
        result = [
            c.copy()
            for c in self._contents.values()
            if (owner_id is None or c.owner_id == owner_id)
            and (tenant_id is None or c.tenant_id == tenant_id)
        ]
        result.sort(key=lambda c: c.created_at)
        return Ok(result)

    async def get_content_by_status(
        self,
        status: ContentStatus,
    ) -> Result[List[Content], ContentStoreError]:
        return Ok([c.copy() for c in self._contents.values() if c.status is status])

    # =========================================================================
    # CONTENT METADATA
    # =========================================================================

    async def set_content_metadata(
        self,
        metadata: ContentMetadata,
    ) -> Result[ContentMetadata, ContentStoreError]:
        async with self._lock:
            if metadata.content_id not in self._contents:
                return Err(ContentError.not_found("content", metadata.content_id, "set_content_metadata"))
            existing = self._content_meta.get(metadata.content_id)
            if existing is not None:
                metadata.created_at = existing.created_at
            metadata.updated_at = utcnow()
            self._content_meta[metadata.content_id] = metadata.copy()
        return Ok(metadata.copy())

    async def get_content_metadata(
        self,
        content_id: UUID,
    ) -> Result[ContentMetadata, ContentStoreError]:
        metadata = self._content_meta.get(content_id)
        if metadata is None:
            return Err(ContentError.not_found("content metadata", content_id, "get_content_metadata"))
        return Ok(metadata.copy())

    # =========================================================================
    # DERIVATION
    # =========================================================================

    async def create_derived_content_relationship(
        self,
        relationship: DerivedContent,
    ) -> Result[DerivedContent, ContentStoreError]:
        """Record the relationship row for an already stored child of parent_id."""
        async with self._lock:
            op = "create_derived_content_relationship"
            if relationship.parent_id not in self._contents:
                return Err(ContentError.not_found("parent content", relationship.parent_id, op))
            child = self._contents.get(relationship.content_id)
            if child is None:
                return Err(ContentError.not_found("content", relationship.content_id, op))
            if relationship.content_id in self._relationships:
                return Err(ContentError.already_exists("derived relationship", relationship.content_id, op))
            if child.parent_id != relationship.parent_id:
                return Err(ContentError.invalid_argument(
                    f"content '{child.id}' is not a child of '{relationship.parent_id}'", op,
                ))
            self._relationships[relationship.content_id] = relationship.copy()
            self._children.setdefault(relationship.parent_id, {})[relationship.content_id] = None
        return Ok(relationship.copy())

    async def get_derived_relationship_by_content_id(
        self,
        content_id: UUID,
    ) -> Result[DerivedContent, ContentStoreError]:
        rel = self._relationships.get(content_id)
        if rel is None:
            return Err(ContentError.not_found(
                "derived relationship", content_id, "get_derived_relationship_by_content_id",
            ))
        return Ok(rel.copy())

    async def get_by_parent_id(self, parent_id: UUID) -> Result[List[Content], ContentStoreError]:
        child_ids = self._children.get(parent_id, {})
        return Ok([self._contents[cid].copy() for cid in child_ids if cid in self._contents])

    async def get_derived_content_tree(
        self,
        root_id: UUID,
        max_depth: int = C.DEFAULT_TREE_DEPTH,
    ) -> Result[List[Content], ContentStoreError]:
        """
        Breadth-first traversal from root, root included.

        Nodes at exactly max_depth hops are included but not expanded.
        """
        if max_depth < 0:
            return Err(ContentError.invalid_argument(
                f"max_depth must be >= 0, got {max_depth}", "get_derived_content_tree",
            ))
        root = self._contents.get(root_id)
        if root is None:
            return Err(ContentError.not_found("content", root_id, "get_derived_content_tree"))

        result: List[Content] = [root.copy()]
        seen = {root_id}
        queue: deque[tuple[UUID, int]] = deque([(root_id, 0)])
        while queue:
            node_id, depth = queue.popleft()
            if depth >= max_depth:
                continue
            for child_id in self._children.get(node_id, {}):
                child = self._contents.get(child_id)
                if child is None or child_id in seen:
                    continue
                seen.add(child_id)
                result.append(child.copy())
                queue.append((child_id, depth + 1))
        return Ok(result)

    def _filter_derived(self, params: ListDerivedContentParams) -> List[DerivedContent]:
        matched = [
            rel
            for rel in self._relationships.values()
            if params.matches(rel, self._contents.get(rel.content_id))
        ]
        matched.sort(key=lambda rel: rel.created_at)
        return matched

    async def list_derived_content(
        self,
        params: ListDerivedContentParams,
    ) -> Result[List[DerivedContent], ContentStoreError]:
        matched = self._filter_derived(params)
        window = matched[params.offset : params.offset + params.limit]
        return Ok([rel.copy() for rel in window])

    async def count_derived_content(
        self,
        params: ListDerivedContentParams,
    ) -> Result[int, ContentStoreError]:
        return Ok(len(self._filter_derived(params)))

    # =========================================================================
    # OBJECTS
    # =========================================================================

    async def create_object(self, obj: Object) -> Result[Object, ContentStoreError]:
        async with self._lock:
            if obj.id in self._objects:
                return Err(ObjectError.already_exists("object", obj.id, "create_object"))
            if obj.content_id not in self._contents:
                return Err(ContentError.not_found("content", obj.content_id, "create_object"))
            last = self._last_version.get(obj.content_id, 0)
            if obj.version <= 0:
                obj.version = last + 1
            self._last_version[obj.content_id] = max(last, obj.version)
            self._objects[obj.id] = obj.copy()
        return Ok(obj.copy())

    async def get_object(self, object_id: UUID) -> Result[Object, ContentStoreError]:
        obj = self._objects.get(object_id)
        if obj is None:
            return Err(ObjectError.not_found("object", object_id, "get_object"))
        return Ok(obj.copy())

    async def update_object(self, obj: Object) -> Result[Object, ContentStoreError]:
        async with self._lock:
            stored = self._objects.get(obj.id)
            if stored is None:
                return Err(ObjectError.not_found("object", obj.id, "update_object"))
            obj.content_id = stored.content_id
            obj.created_at = stored.created_at
            obj.touch()
            self._objects[obj.id] = obj.copy()
        return Ok(obj.copy())

    async def delete_object(self, object_id: UUID) -> Result[None, ContentStoreError]:
        async with self._lock:
            if self._objects.pop(object_id, None) is None:
                return Err(ObjectError.not_found("object", object_id, "delete_object"))
            self._object_meta.pop(object_id, None)
        return Ok(None)

    async def get_objects_by_content_id(
        self,
        content_id: UUID,
    ) -> Result[List[Object], ContentStoreError]:
        objects = [o.copy() for o in self._objects.values() if o.content_id == content_id]
        objects.sort(key=lambda o: o.version)
        return Ok(objects)

    async def get_object_by_key_and_backend(
        self,
        object_key: str,
        backend_name: str,
    ) -> Result[Object, ContentStoreError]:
        for obj in self._objects.values():
            if obj.object_key == object_key and obj.storage_backend_name == backend_name:
                return Ok(obj.copy())
        return Err(ObjectError.not_found(
            "object", f"{backend_name}:{object_key}", "get_object_by_key_and_backend",
        ))

    async def get_objects_by_status(
        self,
        status: ObjectStatus,
    ) -> Result[List[Object], ContentStoreError]:
        return Ok([o.copy() for o in self._objects.values() if o.status is status])

    # =========================================================================
    # OBJECT METADATA
    # =========================================================================

    async def set_object_metadata(
        self,
        metadata: ObjectMetadata,
    ) -> Result[ObjectMetadata, ContentStoreError]:
        async with self._lock:
            if metadata.object_id not in self._objects:
                return Err(ObjectError.not_found("object", metadata.object_id, "set_object_metadata"))
            existing = self._object_meta.get(metadata.object_id)
            if existing is not None:
                metadata.created_at = existing.created_at
            metadata.updated_at = utcnow()
            self._object_meta[metadata.object_id] = metadata.copy()
        return Ok(metadata.copy())

    async def get_object_metadata(
        self,
        object_id: UUID,
    ) -> Result[ObjectMetadata, ContentStoreError]:
        metadata = self._object_meta.get(object_id)
        if metadata is None:
            return Err(ObjectError.not_found("object metadata", object_id, "get_object_metadata"))
        return Ok(metadata.copy())

    def __repr__(self) -> str:
        return f"InMemoryRepository(contents={len(self._contents)}, objects={len(self._objects)})"
