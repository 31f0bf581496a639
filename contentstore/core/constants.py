"""
System-Wide Constants for the Content Store

All limits and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# SIZE AND TIME UNITS
# =============================================================================
KB: Final[int] = 1024
MB: Final[int] = 1024 * KB

SECOND: Final[int] = 1
HOUR: Final[int] = 3600 * SECOND

# =============================================================================
# DERIVATION GRAPH
# =============================================================================
MAX_DERIVATION_DEPTH: Final[int] = 5
DEFAULT_TREE_DEPTH: Final[int] = MAX_DERIVATION_DEPTH

# =============================================================================
# OBJECT KEYS
# =============================================================================
DEFAULT_SHARD_LENGTH: Final[int] = 2
HIGH_PERFORMANCE_SHARD_LENGTH: Final[int] = 3
HASHED_LEAF_END: Final[int] = 16  # hashed leaf spans hex chars [shard_length, 16)
DEFAULT_TENANT: Final[str] = "default"
DEFAULT_VARIANT: Final[str] = "default"
ORIGINALS_PREFIX: Final[str] = "originals"
DERIVED_PREFIX: Final[str] = "derived"
TENANTS_PREFIX: Final[str] = "tenants"
OBJECTS_DIR: Final[str] = "objects"

# =============================================================================
# STORAGE
# =============================================================================
DEFAULT_MIME_TYPE: Final[str] = "application/octet-stream"
STREAM_CHUNK_BYTES: Final[int] = 64 * KB
PRESIGN_DURATION_SECONDS: Final[int] = 1 * HOUR
S3_DEFAULT_REGION: Final[str] = "us-east-1"
SSE_ALGORITHMS: Final[tuple[str, ...]] = ("AES256", "aws:kms")

DEFAULT_BACKEND_NAME: Final[str] = "memory"

# =============================================================================
# LISTING
# =============================================================================
DEFAULT_LIST_LIMIT: Final[int] = 100
MAX_LIST_LIMIT: Final[int] = 1000
