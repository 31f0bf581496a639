"""
Backend Registry

Holds named blob backends. Objects record the name of the backend they
live on; every later operation resolves that name here, so two buckets
of the same type can be registered under different names and routed by
policy.

The registry is populated once at startup and then only read.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List

from contentstore.core.errors import ContentStoreError, StorageError
from contentstore.core.types import Err, Ok, Result
from contentstore.storage.base import BlobStore
from contentstore.storage.config import BackendConfig, BackendType
from contentstore.storage.filesystem import FileSystemBackend
from contentstore.storage.memory import MemoryBackend
from contentstore.storage.s3_store import S3Backend

logger = logging.getLogger(__name__)


class BackendRegistry:
    """Name -> BlobStore map."""

    __slots__ = ("_backends",)

    def __init__(self) -> None:
        self._backends: Dict[str, BlobStore] = {}

    def register(self, name: str, backend: BlobStore) -> Result[None, ContentStoreError]:
        """Register a backend; fails ALREADY_EXISTS on a duplicate name."""
        if not name:
            return Err(StorageError.invalid_argument("backend name is required", "register_backend"))
        if name in self._backends:
            return Err(StorageError.already_exists("backend", name, "register_backend"))
        self._backends[name] = backend
        logger.info("Registered backend %s (%s)", name, backend.kind)
        return Ok(None)

    def get(self, name: str) -> Result[BlobStore, ContentStoreError]:
        backend = self._backends.get(name)
        if backend is None:
            return Err(StorageError.not_found("backend", name, "get_backend"))
        return Ok(backend)

    def names(self) -> List[str]:
        return sorted(self._backends)

    async def close_all(self) -> None:
        """Close every registered backend."""
        for backend in self._backends.values():
            await backend.close()

    def __contains__(self, name: object) -> bool:
        return name in self._backends

    def __len__(self) -> int:
        return len(self._backends)

    def __iter__(self) -> Iterator[str]:
        return iter(self._backends)


def create_backend(config: BackendConfig) -> BlobStore:
    """
    Build an (unconnected) backend from configuration.

    Call ``await backend.connect()`` before use.

    Raises:
        ValueError: Config is missing the section its type requires.
    """
    if config.backend_type is BackendType.MEMORY:
        return MemoryBackend()
    if config.backend_type is BackendType.FILESYSTEM:
        if config.filesystem is None:
            raise ValueError(f"filesystem config required for backend '{config.name}'")
        return FileSystemBackend(config.filesystem)
    if config.backend_type is BackendType.S3:
        if config.s3 is None:
            raise ValueError(f"s3 config required for backend '{config.name}'")
        return S3Backend(config.s3)
    raise ValueError(f"Unsupported backend type: {config.backend_type}")


async def build_registry(configs: Iterable[BackendConfig]) -> BackendRegistry:
    """
    Build, connect and register every configured backend.

    Raises:
        ValueError: Duplicate backend name.
        StorageError: A backend failed to connect.
    """
    registry = BackendRegistry()
    for config in configs:
        backend = create_backend(config)
        connected = await backend.connect()
        if connected.is_err():
            await backend.close()
            await registry.close_all()
            raise connected.error
        registered = registry.register(config.name, backend)
        if registered.is_err():
            await backend.close()
            await registry.close_all()
            raise ValueError(registered.error.message)
    return registry
