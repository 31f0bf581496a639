"""
Content Store: Derivation-Aware Content and Object Management

Logical contents and the physical objects (byte blobs) that realize them
across interchangeable storage backends:
- Derivation Graph: depth-bounded parent/child content trees (max level 5)
- Object Storage: one async contract over memory, filesystem and S3
- Object Keys: swappable placement strategies with hex sharding
- Content Service: single facade with lifecycle events

Author: Planetary AI Systems
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Planetary AI Systems"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from contentstore.core.types import (
    Result,
    Ok,
    Err,
    ContentHash,
)
from contentstore.core.errors import (
    ErrorCode,
    ContentStoreError,
    ContentError,
    ObjectError,
    StorageError,
)
from contentstore.core.models import (
    Content,
    ContentAttributes,
    ContentMetadata,
    ContentStatus,
    DerivationType,
    DerivedContent,
    Object,
    ObjectMetadata,
    ObjectStatus,
    OwnerType,
)
from contentstore.core.config import ContentStoreConfig

# Object keys
from contentstore.objectkey import (
    KeyGenerator,
    KeyMetadata,
    create_key_generator,
    recommended_generator,
)

# Storage
from contentstore.storage import (
    BackendRegistry,
    BlobStore,
    FileSystemBackend,
    MemoryBackend,
    S3Backend,
)

# Persistence and derivation
from contentstore.repository import InMemoryRepository, ListDerivedContentParams, Repository
from contentstore.derivation import DerivationGraph

# Service
from contentstore.service import (
    ContentService,
    EventSink,
    LoggingEventSink,
    ObjectManager,
)

__all__ = [
    # Version
    "__version__",
    "__author__",
    # Result monad
    "Result",
    "Ok",
    "Err",
    "ContentHash",
    # Errors
    "ErrorCode",
    "ContentStoreError",
    "ContentError",
    "ObjectError",
    "StorageError",
    # Models
    "Content",
    "ContentAttributes",
    "ContentMetadata",
    "ContentStatus",
    "DerivationType",
    "DerivedContent",
    "Object",
    "ObjectMetadata",
    "ObjectStatus",
    "OwnerType",
    # Config
    "ContentStoreConfig",
    # Object keys
    "KeyGenerator",
    "KeyMetadata",
    "create_key_generator",
    "recommended_generator",
    # Storage
    "BlobStore",
    "MemoryBackend",
    "FileSystemBackend",
    "S3Backend",
    "BackendRegistry",
    # Persistence and derivation
    "Repository",
    "InMemoryRepository",
    "ListDerivedContentParams",
    "DerivationGraph",
    # Service
    "ContentService",
    "ObjectManager",
    "EventSink",
    "LoggingEventSink",
]
