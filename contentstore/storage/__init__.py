"""
Storage Module: Pluggable Blob Backends
=======================================

Provides:
- The BlobStore contract shared by every backend
- In-memory backend for development/testing
- Filesystem backend with atomic writes and empty-directory cleanup
- S3-compatible backend (AWS, MinIO, R2) over aioboto3
- Named backend registry and a config-driven factory

Design Principles:
-----------------
1. **Backend Agnostic**: Same interface for memory, filesystem and S3
2. **Named Routing**: Objects reference backends by registry name
3. **Lazy Loading**: aioboto3 is imported only when an S3 backend connects
4. **Result Monad**: No exceptions for I/O failures

Example:
    >>> registry = BackendRegistry()
    >>> registry.register("scratch", MemoryBackend())
    >>> registry.register("local", FileSystemBackend(FileSystemConfig(base_dir="/srv/blobs")))
"""

from __future__ import annotations

from contentstore.storage.base import (
    BlobMeta,
    BlobStore,
    Payload,
    UploadParams,
    iter_payload,
    read_payload,
)
from contentstore.storage.config import (
    BackendConfig,
    BackendType,
    FileSystemConfig,
    S3Config,
)
from contentstore.storage.filesystem import FileSystemBackend, detect_content_type
from contentstore.storage.memory import MemoryBackend
from contentstore.storage.registry import BackendRegistry, build_registry, create_backend
from contentstore.storage.s3_store import S3Backend

__all__ = [
    # Contract
    "BlobStore",
    "BlobMeta",
    "UploadParams",
    "Payload",
    "read_payload",
    "iter_payload",
    # Backends
    "MemoryBackend",
    "FileSystemBackend",
    "S3Backend",
    "detect_content_type",
    # Configuration
    "BackendType",
    "BackendConfig",
    "FileSystemConfig",
    "S3Config",
    # Registry
    "BackendRegistry",
    "create_backend",
    "build_registry",
]
