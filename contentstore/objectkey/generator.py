"""
Object Key Generation Strategies

Maps (content id, object id, key metadata) to the storage key under which
an object's bytes are written. The strategy decides physical placement
and, for filesystem backends, directory fan-out.

Layouts:
    legacy            {content_id}/{object_id}[/{file_name}]
    git-like          originals/objects/{shard}/{leaf}[_{file_name}]
                      derived/{type}/{variant}/objects/{shard}/{leaf}[_{file_name}]
    tenant-aware      tenants/{tenant}/{base layout}
    hashed            git-like layout, shard and leaf taken from
                      sha256(content_id || object_id)

Sharding:
    A shard prefix of N hex characters bounds every directory to at most
    16^N entries, avoiding the performance cliff of flat directories with
    millions of files. N=2 gives 256 shards, N=3 gives 4096.

Complexity: O(1) per key (O(n) in file name length for sanitization)

Author: Planetary AI Systems
License: MIT
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Iterable, Optional
from uuid import UUID

from contentstore.core import constants as C
from contentstore.objectkey.sanitize import sanitize_filename, sanitize_path_component


# =============================================================================
# KEY METADATA
# =============================================================================
@dataclass(frozen=True, slots=True)
class KeyMetadata:
    """
    Information that influences key placement.

    Attributes:
        file_name: Original file name (sanitized before use).
        content_type: MIME type hint.
        tenant_id: Tenant for tenant-aware layouts.
        owner_id: Owner of the content.
        is_original: False for derived contents.
        derivation_type: Category such as "thumbnail" or "preview".
        variant: Specific output such as "256x256" or "1080p".
        parent_content_id: Parent of a derived content.
    """

    file_name: str = ""
    content_type: str = ""
    tenant_id: str = ""
    owner_id: str = ""
    is_original: bool = True
    derivation_type: str = ""
    variant: str = ""
    parent_content_id: Optional[UUID] = None

    @property
    def is_derived(self) -> bool:
        return not self.is_original and bool(self.derivation_type)


# =============================================================================
# STRATEGY BASE
# =============================================================================
class KeyGenerator(ABC):
    """Strategy interface for object key generation."""

    name: str = "abstract"

    @abstractmethod
    def generate_key(
        self,
        content_id: UUID,
        object_id: UUID,
        metadata: Optional[KeyMetadata] = None,
    ) -> str:
        """Return the storage key for an object."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def _with_file_name(leaf: str, metadata: Optional[KeyMetadata]) -> str:
    if metadata is not None and metadata.file_name:
        return f"{leaf}_{sanitize_filename(metadata.file_name)}"
    return leaf


def _placement_prefix(shard: str, metadata: Optional[KeyMetadata]) -> str:
    if metadata is not None and metadata.is_derived:
        variant = sanitize_path_component(metadata.variant) if metadata.variant else C.DEFAULT_VARIANT
        return "/".join((
            C.DERIVED_PREFIX,
            sanitize_path_component(metadata.derivation_type),
            variant,
            C.OBJECTS_DIR,
            shard,
        ))
    return f"{C.ORIGINALS_PREFIX}/{C.OBJECTS_DIR}/{shard}"


def _check_shard_length(shard_length: int) -> None:
    if shard_length < 1:
        raise ValueError(f"shard_length must be >= 1, got {shard_length}")


# =============================================================================
# STRATEGIES
# =============================================================================
class LegacyKeyGenerator(KeyGenerator):
    """
    Flat layout without sharding, kept for backward compatibility.

    ``prefix`` reproduces installations whose keys start with a fixed
    segment (historically ``"C"``).
    """

    name = "legacy"

    __slots__ = ("prefix",)

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix.strip("/")

    def generate_key(
        self,
        content_id: UUID,
        object_id: UUID,
        metadata: Optional[KeyMetadata] = None,
    ) -> str:
        parts = [str(content_id), str(object_id)]
        if self.prefix:
            parts.insert(0, self.prefix)
        if metadata is not None and metadata.file_name:
            parts.append(sanitize_filename(metadata.file_name))
        return "/".join(parts)


class GitLikeKeyGenerator(KeyGenerator):
    """
    Git-style sharding on the object id, separating originals from derived.

    Example (shard_length=2):
        originals/objects/ab/cd1234ef56789012345678901234_photo.jpg
        derived/thumbnail/256x256/objects/ab/cd1234ef..._photo.jpg
    """

    name = "git-like"

    __slots__ = ("shard_length",)

    def __init__(self, shard_length: int = C.DEFAULT_SHARD_LENGTH) -> None:
        _check_shard_length(shard_length)
        self.shard_length = shard_length

    def generate_key(
        self,
        content_id: UUID,
        object_id: UUID,
        metadata: Optional[KeyMetadata] = None,
    ) -> str:
        hex_id = object_id.hex  # dashes stripped, 32 lowercase hex chars
        n = min(self.shard_length, len(hex_id))
        shard, leaf = hex_id[:n], hex_id[n:]
        return f"{_placement_prefix(shard, metadata)}/{_with_file_name(leaf, metadata)}"

    def __repr__(self) -> str:
        return f"GitLikeKeyGenerator(shard_length={self.shard_length})"


class HashedGitLikeKeyGenerator(KeyGenerator):
    """
    Deterministic, content-addressed variant of the git-like layout.

    The same (content id, object id) pair always maps to the same key,
    which supports dedup-style lookups without a repository round trip.
    """

    name = "hashed"

    __slots__ = ("shard_length",)

    def __init__(self, shard_length: int = C.DEFAULT_SHARD_LENGTH) -> None:
        _check_shard_length(shard_length)
        if shard_length >= C.HASHED_LEAF_END:
            raise ValueError(f"shard_length must be < {C.HASHED_LEAF_END}, got {shard_length}")
        self.shard_length = shard_length

    def generate_key(
        self,
        content_id: UUID,
        object_id: UUID,
        metadata: Optional[KeyMetadata] = None,
    ) -> str:
        digest = hashlib.sha256(f"{content_id}{object_id}".encode("utf-8")).hexdigest()
        shard = digest[: self.shard_length]
        leaf = digest[self.shard_length : C.HASHED_LEAF_END]
        return f"{_placement_prefix(shard, metadata)}/{_with_file_name(leaf, metadata)}"

    def __repr__(self) -> str:
        return f"HashedGitLikeKeyGenerator(shard_length={self.shard_length})"


class TenantAwareKeyGenerator(KeyGenerator):
    """Prefixes any base strategy's key with ``tenants/{tenant}/``."""

    name = "tenant-aware"

    __slots__ = ("base", "default_tenant")

    def __init__(
        self,
        base: Optional[KeyGenerator] = None,
        default_tenant: str = C.DEFAULT_TENANT,
    ) -> None:
        self.base = base if base is not None else GitLikeKeyGenerator()
        self.default_tenant = sanitize_path_component(default_tenant)

    def generate_key(
        self,
        content_id: UUID,
        object_id: UUID,
        metadata: Optional[KeyMetadata] = None,
    ) -> str:
        tenant = self.default_tenant
        if metadata is not None and metadata.tenant_id:
            tenant = sanitize_path_component(metadata.tenant_id)
        base_key = self.base.generate_key(content_id, object_id, metadata)
        return f"{C.TENANTS_PREFIX}/{tenant}/{base_key}"

    def __repr__(self) -> str:
        return f"TenantAwareKeyGenerator(base={self.base!r})"


KeyFunc = Callable[[UUID, UUID, Optional[KeyMetadata]], str]


class CustomKeyGenerator(KeyGenerator):
    """Delegates to a caller-supplied function with the same signature."""

    name = "custom"

    __slots__ = ("fn",)

    def __init__(self, fn: KeyFunc) -> None:
        if not callable(fn):
            raise TypeError("fn must be callable")
        self.fn = fn

    def generate_key(
        self,
        content_id: UUID,
        object_id: UUID,
        metadata: Optional[KeyMetadata] = None,
    ) -> str:
        return self.fn(content_id, object_id, metadata)


# =============================================================================
# PRESETS AND FACTORY
# =============================================================================
def recommended_generator() -> KeyGenerator:
    """Default for new installations."""
    return GitLikeKeyGenerator()


def multi_tenant_generator() -> KeyGenerator:
    return TenantAwareKeyGenerator(GitLikeKeyGenerator())


def high_performance_generator() -> KeyGenerator:
    """3-character shards (4096 directories) for very large stores."""
    return GitLikeKeyGenerator(shard_length=C.HIGH_PERFORMANCE_SHARD_LENGTH)


def create_key_generator(
    strategy: str,
    shard_length: int = C.DEFAULT_SHARD_LENGTH,
    legacy_prefix: str = "",
    default_tenant: str = C.DEFAULT_TENANT,
) -> KeyGenerator:
    """
    Build a generator by strategy name.

    Raises:
        ValueError: Unknown strategy or invalid shard length.
    """
    strategy = strategy.strip().lower().replace("_", "-")
    if strategy == "legacy":
        return LegacyKeyGenerator(prefix=legacy_prefix)
    if strategy in ("git-like", "gitlike", "recommended"):
        return GitLikeKeyGenerator(shard_length=shard_length)
    if strategy in ("hashed", "hashed-git-like"):
        return HashedGitLikeKeyGenerator(shard_length=shard_length)
    if strategy in ("tenant-aware", "multi-tenant"):
        return TenantAwareKeyGenerator(
            GitLikeKeyGenerator(shard_length=shard_length),
            default_tenant=default_tenant,
        )
    if strategy == "high-performance":
        return high_performance_generator()
    raise ValueError(f"Unknown key generator strategy: {strategy!r}")


# =============================================================================
# SHARD STATISTICS
# =============================================================================
def shard_of(key: str) -> Optional[str]:
    """
    Return the shard directory of a sharded key, or None for flat keys.

    The shard is the path segment right after the last ``objects``
    directory that still has a leaf below it.
    """
    parts = key.split("/")
    for i in range(len(parts) - 3, -1, -1):
        if parts[i] == C.OBJECTS_DIR:
            return parts[i + 1]
    return None


@dataclass(frozen=True, slots=True)
class ShardDistribution:
    """Fan-out summary for a sample of keys."""

    total: int
    distinct_shards: int
    max_shard_count: int

    @property
    def max_share(self) -> float:
        return self.max_shard_count / self.total if self.total else 0.0


def shard_distribution(keys: Iterable[str]) -> ShardDistribution:
    """
    Summarize how keys spread over shard directories.

    Complexity: O(n) in number of keys
    """
    counts: Counter[str] = Counter()
    total = 0
    for key in keys:
        total += 1
        shard = shard_of(key)
        if shard is not None:
            counts[shard] += 1
    return ShardDistribution(
        total=total,
        distinct_shards=len(counts),
        max_shard_count=max(counts.values(), default=0),
    )
