"""
Entity Models for the Content Store

Content is the logical entity; Object is a physical blob realizing a
content's bytes on one backend. Each has a 1:1 metadata record, and
derived contents are linked to their parent by a DerivedContent
relationship record.

Design Principles:
- Parent pointer plus cached derivation level on Content is canonical;
  DerivedContent mirrors it with derivation type/variant/params
- Metadata is never inherited from a parent
- Entities are plain mutable dataclasses; repositories hand out copies

Author: Planetary AI Systems
License: MIT
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from contentstore.core.types import new_id, utcnow


# =============================================================================
# ENUMERATIONS
# =============================================================================
class ContentStatus(str, Enum):
    """Lifecycle status of a Content."""

    CREATED = "created"
    UPLOADED = "uploaded"
    DELETED = "deleted"


class ObjectStatus(str, Enum):
    """
    Lifecycle status of an Object.

    created -> uploading -> uploaded | processing -> processed | failed | deleted
    """

    CREATED = "created"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"
    DELETED = "deleted"


class DerivationType(str, Enum):
    """Whether a Content is a root or computed from a parent."""

    ORIGINAL = "original"
    DERIVED = "derived"


class OwnerType(str, Enum):
    USER = "user"
    GROUP = "group"
    SYSTEM = "system"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _uuid(value: Optional[str]) -> Optional[UUID]:
    return UUID(value) if value else None


# =============================================================================
# CONTENT
# =============================================================================
@dataclass(frozen=True, slots=True)
class ContentAttributes:
    """Caller-supplied descriptive fields for a new content."""

    name: str = ""
    description: str = ""
    document_type: str = ""
    owner_type: OwnerType = OwnerType.USER


@dataclass(slots=True)
class Content:
    """
    Logical content item.

    Invariants:
        derivation_level == 0 and parent_id is None for roots
        derivation_level == parent.derivation_level + 1 otherwise
    """

    tenant_id: UUID
    owner_id: UUID
    id: UUID = field(default_factory=new_id)
    owner_type: OwnerType = OwnerType.USER
    name: str = ""
    description: str = ""
    document_type: str = ""
    status: ContentStatus = ContentStatus.CREATED
    derivation_type: DerivationType = DerivationType.ORIGINAL
    parent_id: Optional[UUID] = None
    derivation_level: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_derived(self) -> bool:
        return self.derivation_type is DerivationType.DERIVED

    def copy(self) -> Content:
        return copy.copy(self)

    def touch(self) -> None:
        self.updated_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "owner_id": str(self.owner_id),
            "owner_type": self.owner_type.value,
            "name": self.name,
            "description": self.description,
            "document_type": self.document_type,
            "status": self.status.value,
            "derivation_type": self.derivation_type.value,
            "parent_id": str(self.parent_id) if self.parent_id else None,
            "derivation_level": self.derivation_level,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Content:
        """Deserialize from dictionary."""
        created = datetime.fromisoformat(data["created_at"]) if data.get("created_at") else utcnow()
        return cls(
            id=UUID(data["id"]),
            tenant_id=UUID(data["tenant_id"]),
            owner_id=UUID(data["owner_id"]),
            owner_type=OwnerType(data.get("owner_type", OwnerType.USER.value)),
            name=data.get("name", ""),
            description=data.get("description", ""),
            document_type=data.get("document_type", ""),
            status=ContentStatus(data.get("status", ContentStatus.CREATED.value)),
            derivation_type=DerivationType(
                data.get("derivation_type", DerivationType.ORIGINAL.value)
            ),
            parent_id=_uuid(data.get("parent_id")),
            derivation_level=data.get("derivation_level", 0),
            created_at=created,
            updated_at=(
                datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else created
            ),
        )


@dataclass(slots=True)
class ContentMetadata:
    """Per-content descriptive metadata (1:1 with Content)."""

    content_id: UUID
    tags: List[str] = field(default_factory=list)
    file_size: int = 0
    file_name: str = ""
    mime_type: str = ""
    checksum: str = ""
    checksum_algorithm: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def copy(self) -> ContentMetadata:
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content_id": str(self.content_id),
            "tags": list(self.tags),
            "file_size": self.file_size,
            "file_name": self.file_name,
            "mime_type": self.mime_type,
            "checksum": self.checksum,
            "checksum_algorithm": self.checksum_algorithm,
            "metadata": dict(self.metadata),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(slots=True)
class DerivedContent:
    """
    Parent/child relationship record for a derived content.

    ``derivation_type`` is the category of derivation ("thumbnail",
    "preview", "transcode"); ``variant`` is the specific output
    ("thumbnail_256"). Both are stored lowercased.
    """

    parent_id: UUID
    content_id: UUID
    derivation_type: str
    variant: str = ""
    derivation_params: Dict[str, Any] = field(default_factory=dict)
    processing_metadata: Dict[str, Any] = field(default_factory=dict)
    document_type: str = ""
    status: ContentStatus = ContentStatus.CREATED
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.derivation_type = self.derivation_type.strip().lower()
        self.variant = (self.variant or self.derivation_type).strip().lower()

    def copy(self) -> DerivedContent:
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parent_id": str(self.parent_id),
            "content_id": str(self.content_id),
            "derivation_type": self.derivation_type,
            "variant": self.variant,
            "derivation_params": dict(self.derivation_params),
            "processing_metadata": dict(self.processing_metadata),
            "document_type": self.document_type,
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# =============================================================================
# OBJECT
# =============================================================================
@dataclass(slots=True)
class Object:
    """
    Physical realization of a content's bytes on one backend.

    The backend is identified by the name it was registered under, never
    by its type.
    """

    content_id: UUID
    storage_backend_name: str
    object_key: str = ""
    id: UUID = field(default_factory=new_id)
    file_name: str = ""
    version: int = 0  # 0 means "assign next version" on create
    object_type: str = ""
    status: ObjectStatus = ObjectStatus.CREATED
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_downloadable(self) -> bool:
        return self.status in (ObjectStatus.UPLOADED, ObjectStatus.PROCESSED)

    def copy(self) -> Object:
        return copy.copy(self)

    def touch(self) -> None:
        self.updated_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "content_id": str(self.content_id),
            "storage_backend_name": self.storage_backend_name,
            "object_key": self.object_key,
            "file_name": self.file_name,
            "version": self.version,
            "object_type": self.object_type,
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(slots=True)
class ObjectMetadata:
    """Authoritative metadata read back from the backend after upload."""

    object_id: UUID
    size_bytes: int = 0
    mime_type: str = ""
    etag: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def copy(self) -> ObjectMetadata:
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_id": str(self.object_id),
            "size_bytes": self.size_bytes,
            "mime_type": self.mime_type,
            "etag": self.etag,
            "metadata": dict(self.metadata),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


__all__ = [
    "ContentStatus",
    "ObjectStatus",
    "DerivationType",
    "OwnerType",
    "ContentAttributes",
    "Content",
    "ContentMetadata",
    "DerivedContent",
    "Object",
    "ObjectMetadata",
]
