"""
Object key module: pluggable storage key strategies and sanitization.
"""

from contentstore.objectkey.generator import (
    CustomKeyGenerator,
    GitLikeKeyGenerator,
    HashedGitLikeKeyGenerator,
    KeyGenerator,
    KeyMetadata,
    LegacyKeyGenerator,
    ShardDistribution,
    TenantAwareKeyGenerator,
    create_key_generator,
    high_performance_generator,
    multi_tenant_generator,
    recommended_generator,
    shard_distribution,
    shard_of,
)
from contentstore.objectkey.sanitize import (
    is_sanitized,
    sanitize_filename,
    sanitize_path_component,
)

__all__ = [
    "KeyGenerator",
    "KeyMetadata",
    "LegacyKeyGenerator",
    "GitLikeKeyGenerator",
    "HashedGitLikeKeyGenerator",
    "TenantAwareKeyGenerator",
    "CustomKeyGenerator",
    "ShardDistribution",
    "create_key_generator",
    "recommended_generator",
    "multi_tenant_generator",
    "high_performance_generator",
    "shard_distribution",
    "shard_of",
    "sanitize_filename",
    "sanitize_path_component",
    "is_sanitized",
]
