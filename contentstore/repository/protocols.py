"""
Repository Protocol: Persistence Contract for Contents and Objects

Structural subtyping protocol (PEP 544) implemented by every repository
backend. The in-memory repository is the reference implementation; SQL
repositories live outside this package and only need to satisfy the
same shape.

Design Principles:
    - Zero-exception control flow via Result[T, ContentStoreError]
    - Repositories hand out copies; mutating a returned entity never
      changes stored state until it is written back
    - create_derived_content checks the parent's level and inserts the
      child in one step, so the depth cap holds under concurrency

Author: Planetary AI Systems
License: MIT
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, runtime_checkable
from uuid import UUID

from contentstore.core import constants as C
from contentstore.core.errors import ContentStoreError
from contentstore.core.models import (
    Content,
    ContentMetadata,
    DerivedContent,
    Object,
    ObjectMetadata,
    ObjectStatus,
    ContentStatus,
)
from contentstore.core.types import Result


# =============================================================================
# QUERY PARAMETERS
# =============================================================================
@dataclass(frozen=True, slots=True)
class ListDerivedContentParams:
    """
    Filters for derived-content listing.

    Empty filter collections match everything. Results are ordered by
    creation time (oldest first) before offset/limit are applied.
    """

    parent_ids: Sequence[UUID] = field(default_factory=tuple)
    derivation_types: Sequence[str] = field(default_factory=tuple)
    variants: Sequence[str] = field(default_factory=tuple)
    tenant_id: Optional[UUID] = None
    limit: int = C.DEFAULT_LIST_LIMIT
    offset: int = 0

    def __post_init__(self) -> None:
        if self.limit < 0 or self.limit > C.MAX_LIST_LIMIT:
            raise ValueError(f"limit must be in [0, {C.MAX_LIST_LIMIT}], got {self.limit}")
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
        object.__setattr__(self, "parent_ids", tuple(self.parent_ids))
        object.__setattr__(
            self, "derivation_types", tuple(t.strip().lower() for t in self.derivation_types)
        )
        object.__setattr__(self, "variants", tuple(v.strip().lower() for v in self.variants))

    def matches(self, rel: DerivedContent, content: Optional[Content]) -> bool:
        if self.parent_ids and rel.parent_id not in self.parent_ids:
            return False
        if self.derivation_types and rel.derivation_type not in self.derivation_types:
            return False
        if self.variants and rel.variant not in self.variants:
            return False
        if self.tenant_id is not None and (content is None or content.tenant_id != self.tenant_id):
            return False
        return True


# =============================================================================
# REPOSITORY PROTOCOL
# =============================================================================
@runtime_checkable
class Repository(Protocol):
    """
    Persistence contract for contents, objects, metadata and derivation
    relationships.

    All methods return Result[T, ContentStoreError]:
        NOT_FOUND       entity absent
        ALREADY_EXISTS  duplicate id on create
        DEPTH_EXCEEDED  derivation level cap reached
    """

    # ----- contents ---------------------------------------------------------
    @abstractmethod
    async def create_content(self, content: Content) -> Result[Content, ContentStoreError]:
        ...

    @abstractmethod
    async def create_derived_content(
        self,
        content: Content,
        relationship: DerivedContent,
        max_depth: int = C.MAX_DERIVATION_DEPTH,
    ) -> Result[Content, ContentStoreError]:
        """
        Atomically validate the parent and insert a derived content.

        Sets ``content.parent_id``, ``content.derivation_level`` (parent
        level + 1) and ``content.derivation_type`` from the stored parent.

        Returns:
            Ok(content): Inserted child
            Err(NOT_FOUND): Parent absent
            Err(DEPTH_EXCEEDED): parent.derivation_level >= max_depth
        """
        ...

    @abstractmethod
    async def get_content(self, content_id: UUID) -> Result[Content, ContentStoreError]:
        ...

    @abstractmethod
    async def update_content(self, content: Content) -> Result[Content, ContentStoreError]:
        ...

    @abstractmethod
    async def delete_content(self, content_id: UUID) -> Result[None, ContentStoreError]:
        ...

    @abstractmethod
    async def list_content(
        self,
        owner_id: Optional[UUID] = None,
        tenant_id: Optional[UUID] = None,
    ) -> Result[List[Content], ContentStoreError]:
        ...

    @abstractmethod
    async def get_content_by_status(
        self,
        status: ContentStatus,
    ) -> Result[List[Content], ContentStoreError]:
        ...

    # ----- content metadata -------------------------------------------------
    @abstractmethod
    async def set_content_metadata(
        self,
        metadata: ContentMetadata,
    ) -> Result[ContentMetadata, ContentStoreError]:
        ...

    @abstractmethod
    async def get_content_metadata(
        self,
        content_id: UUID,
    ) -> Result[ContentMetadata, ContentStoreError]:
        ...

    # ----- derivation -------------------------------------------------------
    @abstractmethod
    async def create_derived_content_relationship(
        self,
        relationship: DerivedContent,
    ) -> Result[DerivedContent, ContentStoreError]:
        ...

    @abstractmethod
    async def get_derived_relationship_by_content_id(
        self,
        content_id: UUID,
    ) -> Result[DerivedContent, ContentStoreError]:
        ...

    @abstractmethod
    async def get_by_parent_id(self, parent_id: UUID) -> Result[List[Content], ContentStoreError]:
        ...

    @abstractmethod
    async def get_derived_content_tree(
        self,
        root_id: UUID,
        max_depth: int = C.DEFAULT_TREE_DEPTH,
    ) -> Result[List[Content], ContentStoreError]:
        ...

    @abstractmethod
    async def list_derived_content(
        self,
        params: ListDerivedContentParams,
    ) -> Result[List[DerivedContent], ContentStoreError]:
        ...

    @abstractmethod
    async def count_derived_content(
        self,
        params: ListDerivedContentParams,
    ) -> Result[int, ContentStoreError]:
        ...

    # ----- objects ----------------------------------------------------------
    @abstractmethod
    async def create_object(self, obj: Object) -> Result[Object, ContentStoreError]:
        """Insert an object; assigns the next per-content version when 0."""
        ...

    @abstractmethod
    async def get_object(self, object_id: UUID) -> Result[Object, ContentStoreError]:
        ...

    @abstractmethod
    async def update_object(self, obj: Object) -> Result[Object, ContentStoreError]:
        ...

    @abstractmethod
    async def delete_object(self, object_id: UUID) -> Result[None, ContentStoreError]:
        ...

    @abstractmethod
    async def get_objects_by_content_id(
        self,
        content_id: UUID,
    ) -> Result[List[Object], ContentStoreError]:
        ...

    @abstractmethod
    async def get_object_by_key_and_backend(
        self,
        object_key: str,
        backend_name: str,
    ) -> Result[Object, ContentStoreError]:
        ...

    @abstractmethod
    async def get_objects_by_status(
        self,
        status: ObjectStatus,
    ) -> Result[List[Object], ContentStoreError]:
        ...

    # ----- object metadata --------------------------------------------------
    @abstractmethod
    async def set_object_metadata(
        self,
        metadata: ObjectMetadata,
    ) -> Result[ObjectMetadata, ContentStoreError]:
        ...

    @abstractmethod
    async def get_object_metadata(
        self,
        object_id: UUID,
    ) -> Result[ObjectMetadata, ContentStoreError]:
        ...
