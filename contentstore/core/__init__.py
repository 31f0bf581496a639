"""
Core module: Type definitions, entity models, error hierarchy, and configuration.

This module provides the foundational abstractions for the content store:
- Result/Either monads for zero-exception control flow
- Content and Object entities with their metadata records
- Exhaustive error hierarchy with pattern matching support
- Configuration management with validation
"""

from contentstore.core.types import (
    Result,
    Ok,
    Err,
    ContentHash,
    Timestamp,
    new_id,
    utcnow,
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

__all__ = [
    "Result",
    "Ok",
    "Err",
    "ContentHash",
    "Timestamp",
    "new_id",
    "utcnow",
    "ErrorCode",
    "ContentStoreError",
    "ContentError",
    "ObjectError",
    "StorageError",
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
    "ContentStoreConfig",
]
