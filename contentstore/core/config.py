"""
Configuration Management for the Content Store

Provides validated configuration with sensible defaults and environment
variable overrides.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses

Environment (prefix CONTENTSTORE_):
    BACKENDS            comma list of name:type, e.g. "local:fs,archive:s3"
    DEFAULT_BACKEND     registry name used when none is given
    KEY_STRATEGY        legacy | git-like | hashed | tenant-aware | high-performance
    SHARD_LENGTH        hex characters per shard directory
    LEGACY_PREFIX       leading segment for legacy keys ("C" for the old layout)
    DEFAULT_TENANT      tenant segment when a content carries none
    MAX_DERIVATION_DEPTH  0..5
    LOG_LEVEL, LOG_JSON

Per-backend settings are read from CONTENTSTORE_{NAME}_FS_* and
CONTENTSTORE_{NAME}_S3_* (see contentstore.storage.config).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from contentstore.core import constants as C
from contentstore.core.types import Err, Ok, Result
from contentstore.objectkey.generator import KeyGenerator, create_key_generator
from contentstore.observability.logging import LogLevel
from contentstore.storage.config import BackendConfig, BackendType

_PREFIX = "CONTENTSTORE_"


def _env(key: str, default: str = "") -> str:
    return os.getenv(f"{_PREFIX}{key}", default)


def _default_backends() -> Tuple[BackendConfig, ...]:
    return (BackendConfig(name=C.DEFAULT_BACKEND_NAME),)


def _parse_backends(spec: str) -> Tuple[BackendConfig, ...]:
    """Parse "name:type,name:type"; a bare name means a memory backend."""
    backends = []
    for entry in spec.split(","):
        entry = entry.strip()
        if not entry:
            continue
        name, _, kind = entry.partition(":")
        backend_type = BackendType.parse(kind) if kind else BackendType.MEMORY
        backends.append(BackendConfig.from_env(name.strip(), backend_type))
    return tuple(backends)


@dataclass(frozen=True)
class ContentStoreConfig:
    """Root configuration for the content store."""

    default_backend: str = C.DEFAULT_BACKEND_NAME
    backends: Tuple[BackendConfig, ...] = field(default_factory=_default_backends)
    key_generator: str = "git-like"
    shard_length: int = C.DEFAULT_SHARD_LENGTH
    legacy_prefix: str = ""
    default_tenant: str = C.DEFAULT_TENANT
    max_derivation_depth: int = C.MAX_DERIVATION_DEPTH
    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls) -> Result[ContentStoreConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with CONTENTSTORE_.
        Example: CONTENTSTORE_BACKENDS=local:fs, CONTENTSTORE_LOCAL_FS_BASE_DIR=/srv/blobs
        """
        try:
            backends_spec = _env("BACKENDS")
            backends = _parse_backends(backends_spec) if backends_spec else _default_backends()
            default_backend = _env("DEFAULT_BACKEND") or backends[0].name
            return Ok(cls(
                default_backend=default_backend,
                backends=backends,
                key_generator=_env("KEY_STRATEGY", "git-like"),
                shard_length=int(_env("SHARD_LENGTH", str(C.DEFAULT_SHARD_LENGTH))),
                legacy_prefix=_env("LEGACY_PREFIX"),
                default_tenant=_env("DEFAULT_TENANT", C.DEFAULT_TENANT),
                max_derivation_depth=int(
                    _env("MAX_DERIVATION_DEPTH", str(C.MAX_DERIVATION_DEPTH))
                ),
                log_level=_env("LOG_LEVEL", "INFO"),
                log_json=_env("LOG_JSON", "true").lower() in ("true", "1", "yes"),
            ))
        except (ValueError, TypeError, IndexError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if not self.backends:
            return Err("At least one backend must be configured")
        names = [b.name for b in self.backends]
        if len(names) != len(set(names)):
            return Err(f"Duplicate backend names: {sorted(names)}")
        if self.default_backend not in names:
            return Err(f"Default backend {self.default_backend!r} is not configured")
        if not 0 <= self.max_derivation_depth <= C.MAX_DERIVATION_DEPTH:
            return Err(f"max_derivation_depth must be in [0, {C.MAX_DERIVATION_DEPTH}]")
        try:
            self.create_key_generator()
            LogLevel.parse(self.log_level)
        except ValueError as e:
            return Err(str(e))
        return Ok(None)

    def create_key_generator(self) -> KeyGenerator:
        """
        Raises:
            ValueError: Unknown strategy or invalid shard length.
        """
        return create_key_generator(
            self.key_generator,
            shard_length=self.shard_length,
            legacy_prefix=self.legacy_prefix,
            default_tenant=self.default_tenant,
        )

    def backend(self, name: str) -> Optional[BackendConfig]:
        for backend in self.backends:
            if backend.name == name:
                return backend
        return None
