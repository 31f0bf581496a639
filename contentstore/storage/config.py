"""
Storage Backend Configuration Module
====================================

Type-safe, immutable configuration dataclasses for blob storage backends.

Design Principles:
------------------
1. **Immutability**: All configs are frozen to prevent runtime mutation
2. **Validation**: Pre-conditions checked at construction time
3. **Defaults**: Sensible defaults for development; explicit for production
4. **Environment**: Supports loading from environment variables

Author: Planetary AI Systems
License: MIT
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from contentstore.core import constants as C


# =============================================================================
# ENUMERATIONS
# =============================================================================

class BackendType(Enum):
    """
    Blob backend type enumeration.

    Used for factory dispatch when building backends from configuration.
    Call sites never inspect it: backends are resolved by registered name.
    """
    MEMORY = "memory"
    FILESYSTEM = "fs"
    S3 = "s3"

    @classmethod
    def parse(cls, value: str) -> BackendType:
        aliases = {"memory": cls.MEMORY, "in_memory": cls.MEMORY,
                   "fs": cls.FILESYSTEM, "filesystem": cls.FILESYSTEM,
                   "s3": cls.S3, "minio": cls.S3}
        try:
            return aliases[value.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown backend type: {value!r}") from None


def _env_reader(prefix: str) -> tuple[
    Callable[[str, str], str],
    Callable[[str, int], int],
    Callable[[str, bool], bool],
]:
    def _get(key: str, default: str = "") -> str:
        return os.environ.get(f"{prefix}_{key}", default)

    def _get_int(key: str, default: int) -> int:
        val = _get(key)
        return int(val) if val else default

    def _get_bool(key: str, default: bool) -> bool:
        val = _get(key).lower()
        if val in ("true", "1", "yes"):
            return True
        if val in ("false", "0", "no"):
            return False
        return default

    return _get, _get_int, _get_bool


# =============================================================================
# FILESYSTEM CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class FileSystemConfig:
    """
    Filesystem backend configuration.

    Attributes:
        base_dir: Root directory; keys map to ``base_dir/key``.
        url_prefix: Public URL prefix served by an external file/HTTP
            layer. Empty disables URL issuance.
        create_dirs: Create ``base_dir`` on backend construction.
    """
    base_dir: Path
    url_prefix: str = ""
    create_dirs: bool = True

    def __post_init__(self) -> None:
        if not str(self.base_dir).strip():
            raise ValueError("base_dir is required")
        object.__setattr__(self, "base_dir", Path(self.base_dir))
        object.__setattr__(self, "url_prefix", self.url_prefix.rstrip("/"))

    @classmethod
    def from_env(cls, prefix: str = "CONTENTSTORE_FS") -> FileSystemConfig:
        """
        Environment Variables:
        - {prefix}_BASE_DIR: Root directory (default: ./data/objects)
        - {prefix}_URL_PREFIX: Public URL prefix (default: none)
        """
        _get, _, _get_bool = _env_reader(prefix)
        return cls(
            base_dir=Path(_get("BASE_DIR", "./data/objects")),
            url_prefix=_get("URL_PREFIX"),
            create_dirs=_get_bool("CREATE_DIRS", True),
        )


# =============================================================================
# S3 CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class S3Config:
    """
    S3-compatible object store configuration.

    Supports AWS S3, MinIO, Cloudflare R2, and other S3-compatible stores.

    Attributes:
        bucket_name: S3 bucket name (required).
        region: AWS region.
        endpoint_url: Custom endpoint for MinIO/R2 (None for AWS).
        access_key_id: AWS access key (None for IAM role auth).
        secret_access_key: AWS secret key (None for IAM role auth).
        session_token: Temporary session token for STS.
        use_ssl: Use HTTPS for connections.
        verify_ssl: Verify SSL certificates (disable for self-signed).
        use_path_style: Path-style addressing (required by most MinIO setups).
        presign_duration_seconds: Validity of presigned URLs.
        enable_sse: Request server-side encryption on upload.
        sse_algorithm: "AES256" or "aws:kms".
        sse_kms_key_id: KMS key id, required when sse_algorithm is aws:kms.
        create_bucket_if_not_exist: Create the bucket on connect().
        connect_timeout_seconds: TCP connect timeout.
        read_timeout_seconds: Read operation timeout.
        max_retries: botocore retry attempts for transient failures.
        max_concurrency: Connection pool size.
    """
    bucket_name: str
    region: str = C.S3_DEFAULT_REGION
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None

    use_ssl: bool = True
    verify_ssl: bool = True
    use_path_style: bool = False

    presign_duration_seconds: int = C.PRESIGN_DURATION_SECONDS

    enable_sse: bool = False
    sse_algorithm: str = "AES256"
    sse_kms_key_id: Optional[str] = None

    create_bucket_if_not_exist: bool = False

    connect_timeout_seconds: int = 5
    read_timeout_seconds: int = 60
    max_retries: int = 3
    max_concurrency: int = 10

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ValueError: If any invariant is violated.
        """
        if not self.bucket_name or len(self.bucket_name) < 3:
            raise ValueError("bucket_name must be at least 3 characters")
        if not self.region:
            raise ValueError("region is required")
        if self.presign_duration_seconds <= 0:
            raise ValueError(
                f"presign_duration_seconds must be > 0, got {self.presign_duration_seconds}"
            )
        if self.enable_sse:
            if self.sse_algorithm not in C.SSE_ALGORITHMS:
                raise ValueError(
                    f"sse_algorithm must be one of {C.SSE_ALGORITHMS}, got {self.sse_algorithm!r}"
                )
            if self.sse_algorithm == "aws:kms" and not self.sse_kms_key_id:
                raise ValueError("sse_kms_key_id is required when sse_algorithm is aws:kms")
        if self.max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be > 0, got {self.max_concurrency}")
        if self.connect_timeout_seconds <= 0 or self.read_timeout_seconds <= 0:
            raise ValueError("timeouts must be > 0")

    @classmethod
    def from_env(cls, prefix: str = "CONTENTSTORE_S3") -> S3Config:
        """
        Construct configuration from environment variables.

        Environment Variables:
        - {prefix}_BUCKET: Bucket name (required)
        - {prefix}_REGION: AWS region (default: us-east-1)
        - {prefix}_ENDPOINT_URL: Custom endpoint URL
        - {prefix}_ACCESS_KEY_ID / {prefix}_SECRET_ACCESS_KEY
          (fall back to AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY)
        - {prefix}_USE_SSL, {prefix}_VERIFY_SSL, {prefix}_USE_PATH_STYLE
        - {prefix}_PRESIGN_DURATION: Seconds (default: 3600)
        - {prefix}_ENABLE_SSE, {prefix}_SSE_ALGORITHM, {prefix}_SSE_KMS_KEY_ID
        - {prefix}_CREATE_BUCKET: Create bucket on connect

        Raises:
            ValueError: If required bucket name is missing.
        """
        _get, _get_int, _get_bool = _env_reader(prefix)

        bucket = _get("BUCKET")
        if not bucket:
            raise ValueError(f"Environment variable {prefix}_BUCKET is required")

        return cls(
            bucket_name=bucket,
            region=_get("REGION", C.S3_DEFAULT_REGION),
            endpoint_url=_get("ENDPOINT_URL") or None,
            access_key_id=_get("ACCESS_KEY_ID") or os.environ.get("AWS_ACCESS_KEY_ID"),
            secret_access_key=_get("SECRET_ACCESS_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY"),
            session_token=os.environ.get("AWS_SESSION_TOKEN"),
            use_ssl=_get_bool("USE_SSL", True),
            verify_ssl=_get_bool("VERIFY_SSL", True),
            use_path_style=_get_bool("USE_PATH_STYLE", False),
            presign_duration_seconds=_get_int("PRESIGN_DURATION", C.PRESIGN_DURATION_SECONDS),
            enable_sse=_get_bool("ENABLE_SSE", False),
            sse_algorithm=_get("SSE_ALGORITHM", "AES256"),
            sse_kms_key_id=_get("SSE_KMS_KEY_ID") or None,
            create_bucket_if_not_exist=_get_bool("CREATE_BUCKET", False),
            connect_timeout_seconds=_get_int("CONNECT_TIMEOUT", 5),
            read_timeout_seconds=_get_int("READ_TIMEOUT", 60),
            max_retries=_get_int("MAX_RETRIES", 3),
        )

    def get_session_kwargs(self) -> Dict[str, Any]:
        """Credentials for aioboto3.Session (empty for IAM role auth)."""
        kwargs: Dict[str, Any] = {}
        if self.access_key_id and self.secret_access_key:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key
        if self.session_token:
            kwargs["aws_session_token"] = self.session_token
        return kwargs

    def get_client_kwargs(self) -> Dict[str, Any]:
        """
        Generate keyword arguments for ``session.client("s3", ...)``.

        Returns:
            Dict including a botocore Config with timeouts, retries,
            pool size and addressing style.
        """
        from botocore.config import Config

        client_config = Config(
            max_pool_connections=self.max_concurrency,
            connect_timeout=self.connect_timeout_seconds,
            read_timeout=self.read_timeout_seconds,
            retries={"max_attempts": self.max_retries},
            s3={"addressing_style": "path" if self.use_path_style else "auto"},
        )

        kwargs: Dict[str, Any] = {
            "region_name": self.region,
            "config": client_config,
            "use_ssl": self.use_ssl,
        }
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if not self.verify_ssl:
            kwargs["verify"] = False
        return kwargs

    def sse_params(self) -> Dict[str, str]:
        """PutObject parameters for server-side encryption (empty when off)."""
        if not self.enable_sse:
            return {}
        params = {"ServerSideEncryption": self.sse_algorithm}
        if self.sse_algorithm == "aws:kms" and self.sse_kms_key_id:
            params["SSEKMSKeyId"] = self.sse_kms_key_id
        return params


# =============================================================================
# NAMED BACKEND CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class BackendConfig:
    """
    One named backend to build and register at startup.

    Attributes:
        name: Registry name objects will reference.
        backend_type: Which implementation to build.
        filesystem: Required when backend_type is FILESYSTEM.
        s3: Required when backend_type is S3.
    """
    name: str
    backend_type: BackendType = BackendType.MEMORY
    filesystem: Optional[FileSystemConfig] = None
    s3: Optional[S3Config] = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("backend name is required")
        if self.backend_type is BackendType.FILESYSTEM and self.filesystem is None:
            raise ValueError(f"filesystem config required for backend '{self.name}'")
        if self.backend_type is BackendType.S3 and self.s3 is None:
            raise ValueError(f"s3 config required for backend '{self.name}'")

    @classmethod
    def from_env(cls, name: str, backend_type: BackendType) -> BackendConfig:
        """
        Load backend-specific settings for a named backend.

        Variables are prefixed ``CONTENTSTORE_{NAME}_FS`` or
        ``CONTENTSTORE_{NAME}_S3`` where NAME is the upper-cased name.
        """
        env_name = name.upper().replace("-", "_")
        if backend_type is BackendType.FILESYSTEM:
            return cls(
                name=name,
                backend_type=backend_type,
                filesystem=FileSystemConfig.from_env(f"CONTENTSTORE_{env_name}_FS"),
            )
        if backend_type is BackendType.S3:
            return cls(
                name=name,
                backend_type=backend_type,
                s3=S3Config.from_env(f"CONTENTSTORE_{env_name}_S3"),
            )
        return cls(name=name, backend_type=backend_type)


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "BackendType",
    "FileSystemConfig",
    "S3Config",
    "BackendConfig",
]
