"""
Derivation Graph Manager

Enforces the rules for creating derived contents and traverses the
derivation tree.

Model:
    A strict forest: every content has at most one parent, no cycles.
    Roots sit at level 0; a child sits at parent level + 1; no content
    may exceed MAX_DERIVATION_DEPTH (5). The cap stops runaway chains
    such as thumbnail-of-thumbnail-of-thumbnail.

Traversal:
    get_tree is a breadth-first walk with a depth counter. Within one
    level the order is whatever the repository returns; callers must not
    rely on it.

Complexity:
    create_root / create_derived: O(1) repository calls
    get_direct_children: O(children)
    get_tree: O(nodes within max_depth hops)

Author: Planetary AI Systems
License: MIT
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from contentstore.core import constants as C
from contentstore.core.errors import ContentError, ContentStoreError
from contentstore.core.models import (
    Content,
    ContentAttributes,
    ContentMetadata,
    DerivationType,
    DerivedContent,
)
from contentstore.core.types import Err, Ok, Result
from contentstore.repository.protocols import Repository

logger = logging.getLogger(__name__)


class DerivationGraph:
    """
    Creates roots and derived contents and answers tree queries.

    Example:
        graph = DerivationGraph(repo)
        root = (await graph.create_root(owner, tenant, ContentAttributes(name="photo"))).unwrap()
        thumb = (await graph.create_derived(root.id, owner, tenant,
                                            derivation_type="thumbnail")).unwrap()
        assert thumb.derivation_level == 1
    """

    __slots__ = ("_repo", "_max_depth")

    def __init__(self, repository: Repository, max_depth: int = C.MAX_DERIVATION_DEPTH) -> None:
        if max_depth < 0 or max_depth > C.MAX_DERIVATION_DEPTH:
            raise ValueError(
                f"max_depth must be in [0, {C.MAX_DERIVATION_DEPTH}], got {max_depth}"
            )
        self._repo = repository
        self._max_depth = max_depth

    @property
    def max_depth(self) -> int:
        return self._max_depth

    async def create_root(
        self,
        owner_id: UUID,
        tenant_id: UUID,
        attrs: Optional[ContentAttributes] = None,
    ) -> Result[Content, ContentStoreError]:
        """Create a level-0 original content."""
        attrs = attrs or ContentAttributes()
        content = Content(
            tenant_id=tenant_id,
            owner_id=owner_id,
            owner_type=attrs.owner_type,
            name=attrs.name,
            description=attrs.description,
            document_type=attrs.document_type,
            derivation_type=DerivationType.ORIGINAL,
            derivation_level=0,
        )
        result = await self._repo.create_content(content)
        if result.is_ok():
            logger.debug("Created root content %s", content.id)
        return result

    async def create_derived(
        self,
        parent_id: UUID,
        owner_id: UUID,
        tenant_id: UUID,
        attrs: Optional[ContentAttributes] = None,
        derivation_type: str = "derived",
        variant: str = "",
        derivation_params: Optional[Dict[str, Any]] = None,
        processing_metadata: Optional[Dict[str, Any]] = None,
        metadata: Optional[ContentMetadata] = None,
    ) -> Result[Content, ContentStoreError]:
        """
        Create a child of ``parent_id`` one level below it.

        The parent lookup, the depth check and the insert happen in one
        repository call, so the cap holds under concurrent derivations.

        Args:
            derivation_type: Category such as "thumbnail" (stored lowercased).
            variant: Specific output such as "thumbnail_256"; defaults to
                the derivation type.
            metadata: Optional initial metadata for the child. Never copied
                from the parent. The caller's object is left unchanged; a
                copy is stored under the child's id.

        Returns:
            Ok(content): New child
            Err(NOT_FOUND): Parent absent
            Err(DEPTH_EXCEEDED): Parent already at the maximum level
            Err(...): Storing the metadata failed. The child stays created
                without metadata and can be retried with set_content_metadata.
        """
        if not derivation_type or not derivation_type.strip():
            return Err(ContentError.invalid_argument("derivation_type is required", "create_derived"))

        attrs = attrs or ContentAttributes()
        content = Content(
            tenant_id=tenant_id,
            owner_id=owner_id,
            owner_type=attrs.owner_type,
            name=attrs.name,
            description=attrs.description,
            document_type=attrs.document_type,
            derivation_type=DerivationType.DERIVED,
            parent_id=parent_id,
        )
        relationship = DerivedContent(
            parent_id=parent_id,
            content_id=content.id,
            derivation_type=derivation_type,
            variant=variant,
            derivation_params=dict(derivation_params or {}),
            processing_metadata=dict(processing_metadata or {}),
            document_type=attrs.document_type,
        )

        result = await self._repo.create_derived_content(content, relationship, self._max_depth)
        if result.is_err():
            return result
        child = result.unwrap()

        if metadata is not None:
            metadata = metadata.copy()
            metadata.content_id = child.id
            meta_result = await self._repo.set_content_metadata(metadata)
            if meta_result.is_err():
                return Err(meta_result.error.wrap("create_derived", id=str(child.id)))

        logger.debug(
            "Created derived content %s (parent=%s, level=%d, type=%s)",
            child.id, parent_id, child.derivation_level, relationship.derivation_type,
        )
        return Ok(child)

    async def get_direct_children(self, parent_id: UUID) -> Result[List[Content], ContentStoreError]:
        """All contents whose parent is ``parent_id`` (unordered)."""
        return await self._repo.get_by_parent_id(parent_id)

    async def get_tree(
        self,
        root_id: UUID,
        max_depth: int = C.DEFAULT_TREE_DEPTH,
    ) -> Result[List[Content], ContentStoreError]:
        """
        Breadth-first listing of the tree under ``root_id``, root first.

        Nodes exactly ``max_depth`` hops away are included, their children
        are not; ``max_depth=0`` returns only the root.
        """
        return await self._repo.get_derived_content_tree(root_id, max_depth)

    async def get_ancestors(self, content_id: UUID) -> Result[List[Content], ContentStoreError]:
        """Parent chain up to the root, nearest first (empty for roots)."""
        current = await self._repo.get_content(content_id)
        if current.is_err():
            return current
        ancestors: List[Content] = []
        node = current.unwrap()
        # bounded by the level cap; the +1 guards against a corrupted chain
        for _ in range(C.MAX_DERIVATION_DEPTH + 1):
            if node.parent_id is None:
                return Ok(ancestors)
            parent = await self._repo.get_content(node.parent_id)
            if parent.is_err():
                return Err(parent.error.wrap("get_ancestors", id=str(content_id)))
            node = parent.unwrap()
            ancestors.append(node)
        return Err(ContentError.invalid_argument(
            f"derivation chain of '{content_id}' exceeds the maximum depth", "get_ancestors",
        ))

    async def get_relationship(self, content_id: UUID) -> Result[DerivedContent, ContentStoreError]:
        return await self._repo.get_derived_relationship_by_content_id(content_id)
