"""
Error Hierarchy for the Content Store

Design Principles:
- Forbid exceptions for control flow (errors travel inside Err)
- Every error carries a stable code, the failing operation and the
  id or key it concerned
- Wrapping adds context but never changes the error's kind

Each error type includes:
- Error code for programmatic handling
- Human-readable message for logging
- Optional cause for root cause analysis (e.g. an OSError or a
  botocore ClientError)
- Timestamp for correlation with log lines

Usage:
    result = await manager.download_object(object_id)
    if result.is_err():
        err = result.error
        if err.code is ErrorCode.NOT_FOUND:
            ...
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from contentstore.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Error kinds surfaced by repositories, backends and services.

    Values are grouped:
    - 1xxx: lookup / identity errors
    - 2xxx: derivation graph errors
    - 3xxx: storage backend errors
    - 4xxx: caller errors
    """

    NOT_FOUND = 1001
    ALREADY_EXISTS = 1002

    DEPTH_EXCEEDED = 2001

    UNSUPPORTED_OPERATION = 3001
    BACKEND_FAILURE = 3002

    INVALID_STATE = 4001
    INVALID_ARGUMENT = 4002


# HTTP status hints for outer layers that translate errors to responses
_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.ALREADY_EXISTS: 409,
    ErrorCode.DEPTH_EXCEEDED: 400,
    ErrorCode.UNSUPPORTED_OPERATION: 501,
    ErrorCode.BACKEND_FAILURE: 502,
    ErrorCode.INVALID_STATE: 409,
    ErrorCode.INVALID_ARGUMENT: 400,
}


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class ContentStoreError(Exception):
    """
    Base class for all content store errors.

    Provides:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp
    - Cause for root cause analysis
    - Context dict (operation, id, key, backend)
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def operation(self) -> Optional[str]:
        return self.context.get("operation")

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self.code, 500)

    def with_context(self, **kwargs: Any) -> ContentStoreError:
        """
        Add context to error (returns new instance of the same class).

        Existing keys win over new ones so the innermost operation that
        produced the error stays visible after wrapping.
        """
        return replace(self, context={**kwargs, **self.context})

    def wrap(self, operation: str, **kwargs: Any) -> ContentStoreError:
        """
        Wrap with an outer operation name, keeping the error kind.

        The outer operation is appended to the ``trace`` list in context.
        """
        trace = [*self.context.get("trace", []), operation]
        ctx = {**kwargs, **self.context, "trace": trace}
        ctx.setdefault("operation", operation)
        return replace(self, context=ctx)

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for logging/API responses."""
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": {k: _jsonable(v) for k, v in self.context.items()},
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )

    # -------------------------------------------------------------------------
    # Generic factories shared by every subsystem
    # -------------------------------------------------------------------------
    @classmethod
    def not_found(cls, entity: str, ident: Any, operation: str = "") -> ContentStoreError:
        """Entity (content, object, parent, backend, key) is absent."""
        return cls(
            code=ErrorCode.NOT_FOUND,
            message=f"{entity} '{ident}' not found",
            context=_ctx(operation, entity=entity, id=str(ident)),
        )

    @classmethod
    def already_exists(cls, entity: str, ident: Any, operation: str = "") -> ContentStoreError:
        """Duplicate id on create."""
        return cls(
            code=ErrorCode.ALREADY_EXISTS,
            message=f"{entity} '{ident}' already exists",
            context=_ctx(operation, entity=entity, id=str(ident)),
        )

    @classmethod
    def invalid_state(
        cls,
        entity: str,
        ident: Any,
        state: str,
        operation: str = "",
    ) -> ContentStoreError:
        """Entity status does not allow the requested operation."""
        return cls(
            code=ErrorCode.INVALID_STATE,
            message=f"{entity} '{ident}' is in state '{state}'; cannot {operation or 'proceed'}",
            context=_ctx(operation, entity=entity, id=str(ident), state=state),
        )

    @classmethod
    def invalid_argument(cls, message: str, operation: str = "", **kwargs: Any) -> ContentStoreError:
        return cls(
            code=ErrorCode.INVALID_ARGUMENT,
            message=message,
            context=_ctx(operation, **kwargs),
        )


# =============================================================================
# CONTENT / DERIVATION ERRORS
# =============================================================================
@dataclass
class ContentError(ContentStoreError):
    """Errors from the content repository and the derivation graph."""

    @classmethod
    def depth_exceeded(
        cls,
        parent_id: Any,
        parent_level: int,
        max_depth: int,
    ) -> ContentError:
        """A derived content would exceed the derivation level cap."""
        return cls(
            code=ErrorCode.DEPTH_EXCEEDED,
            message=(
                f"Cannot derive from content '{parent_id}' at level {parent_level}: "
                f"maximum derivation depth is {max_depth}"
            ),
            context={
                "operation": "create_derived",
                "parent_id": str(parent_id),
                "parent_level": parent_level,
                "max_depth": max_depth,
            },
        )

    @classmethod
    def has_children(cls, content_id: Any, count: int) -> ContentError:
        """Refuse to delete a content that still has derived children."""
        return cls(
            code=ErrorCode.INVALID_STATE,
            message=f"Content '{content_id}' has {count} derived content(s); delete them first",
            context={"operation": "delete_content", "id": str(content_id), "children": count},
        )


# =============================================================================
# OBJECT ERRORS
# =============================================================================
@dataclass
class ObjectError(ContentStoreError):
    """Errors from object lifecycle orchestration."""

    @classmethod
    def not_ready(cls, object_id: Any, status: str) -> ObjectError:
        """Download requested before the object reached uploaded/processed."""
        return cls(
            code=ErrorCode.INVALID_STATE,
            message=f"Object '{object_id}' is not ready for download (status={status})",
            context={"operation": "download_object", "id": str(object_id), "state": status},
        )


# =============================================================================
# STORAGE BACKEND ERRORS
# =============================================================================
@dataclass
class StorageError(ContentStoreError):
    """
    Errors from blob storage backends (memory, filesystem, S3).

    Wraps OSError and botocore ClientError instances as ``cause``.
    """

    @classmethod
    def key_not_found(cls, backend: str, key: str, operation: str = "") -> StorageError:
        return cls(
            code=ErrorCode.NOT_FOUND,
            message=f"Key '{key}' not found in backend '{backend}'",
            context=_ctx(operation, backend=backend, key=key),
        )

    @classmethod
    def unsupported(cls, backend: str, operation: str, reason: str = "") -> StorageError:
        """URL issuance (or another capability) unavailable on this backend."""
        message = f"Operation '{operation}' is not supported by backend '{backend}'"
        if reason:
            message = f"{message}: {reason}"
        return cls(
            code=ErrorCode.UNSUPPORTED_OPERATION,
            message=message,
            context={"operation": operation, "backend": backend},
        )

    @classmethod
    def backend_failure(
        cls,
        backend: str,
        operation: str,
        key: str,
        cause: Optional[BaseException] = None,
    ) -> StorageError:
        """Wrapped I/O error from the underlying storage medium."""
        detail = f": {cause}" if cause is not None else ""
        return cls(
            code=ErrorCode.BACKEND_FAILURE,
            message=f"Backend '{backend}' failed during {operation} of '{key}'{detail}",
            cause=cause,
            context={"operation": operation, "backend": backend, "key": key},
        )

    @classmethod
    def invalid_key(cls, backend: str, key: str, reason: str) -> StorageError:
        return cls(
            code=ErrorCode.INVALID_ARGUMENT,
            message=f"Invalid key '{key}' for backend '{backend}': {reason}",
            context={"backend": backend, "key": key},
        )


# =============================================================================
# HELPERS
# =============================================================================
def _ctx(operation: str, **kwargs: Any) -> dict[str, Any]:
    ctx = dict(kwargs)
    if operation:
        ctx["operation"] = operation
    return ctx


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)
