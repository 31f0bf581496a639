"""
Core Type Definitions for the Content Store

Implements the Result/Either monad used for zero-exception control flow
across repositories, storage backends and services, plus the small value
types shared by every layer (timestamps, identifiers, content hashes).

Design Principles:
- Never use None to signal failure (use Result)
- Errors are values: every async operation returns Ok or Err
- Value types are frozen and slotted

Complexity: O(1) for all type operations except hashing (O(n))
"""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import (
    Any,
    Callable,
    ClassVar,
    Generic,
    Literal,
    TypeVar,
    Union,
)
from uuid import UUID, uuid4

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD: ZERO-EXCEPTION CONTROL FLOW
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.

    Immutable container for a successful computation result. Callers
    narrow with is_ok() before unwrap().
    """

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """Extract value. Safe to call after an is_ok() check."""
        return self.value

    def unwrap_err(self) -> Any:
        raise RuntimeError(f"Called unwrap_err() on Ok: {self.value!r}")

    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def map_err(self, fn: Callable[[Any], Any]) -> Ok[T]:
        return self

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible operations."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.

    Carries the full error value (normally a ContentStoreError) so the
    caller can inspect its code and context.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.

        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_err(self) -> E:
        return self.error

    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant - propagates error unchanged."""
        return self

    def map_err(self, fn: Callable[[E], U]) -> Err[U]:
        """Transform the error, e.g. to add operation context."""
        return Err(fn(self.error))

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        """Propagate error through monadic chain."""
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# IDENTIFIERS AND CLOCK
# =============================================================================
def new_id() -> UUID:
    """Generate a random entity identifier (UUID4)."""
    return uuid4()


def utcnow() -> datetime:
    """Timezone-aware current UTC time used for entity timestamps."""
    return datetime.now(timezone.utc)


def parse_uuid(value: Any) -> Result[UUID, str]:
    """
    Coerce a UUID or its string form.

    Returns:
        Ok[UUID]: Parsed identifier
        Err[str]: Validation error message
    """
    if isinstance(value, UUID):
        return Ok(value)
    try:
        return Ok(UUID(str(value)))
    except ValueError as e:
        return Err(f"Invalid UUID format: {e}")


# =============================================================================
# TIMESTAMP WITH NANOSECOND PRECISION
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    High-precision timestamp for error and event correlation.

    Stores nanoseconds since Unix epoch.
    """

    nanos: int

    NANOS_PER_SECOND: ClassVar[int] = 1_000_000_000
    NANOS_PER_MILLI: ClassVar[int] = 1_000_000

    @classmethod
    def now(cls) -> Timestamp:
        return cls(nanos=time.time_ns())

    @property
    def seconds(self) -> float:
        return self.nanos / self.NANOS_PER_SECOND

    @property
    def millis(self) -> int:
        return self.nanos // self.NANOS_PER_MILLI

    def to_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.seconds, tz=timezone.utc)

    def __repr__(self) -> str:
        return f"Timestamp({self.nanos}ns)"


# =============================================================================
# CONTENT-ADDRESSABLE HASH
# =============================================================================
@dataclass(frozen=True, slots=True)
class ContentHash:
    """
    SHA-256 content hash recorded as a content checksum.

    Memory: 32 bytes (SHA-256 digest)
    """

    digest: bytes

    ALGORITHM: ClassVar[str] = "sha256"

    def __post_init__(self) -> None:
        if len(self.digest) != 32:
            raise ValueError(f"SHA-256 digest must be 32 bytes, got {len(self.digest)}")

    @classmethod
    def compute(cls, data: bytes) -> ContentHash:
        """
        Compute SHA-256 hash of data.

        Complexity: O(n) where n is len(data)
        """
        return cls(digest=hashlib.sha256(data).digest())

    @classmethod
    def from_hex(cls, hex_str: str) -> Result[ContentHash, str]:
        """Parse from hexadecimal string representation."""
        try:
            return Ok(cls(digest=bytes.fromhex(hex_str)))
        except ValueError as e:
            return Err(f"Invalid hex string: {e}")

    def to_hex(self) -> str:
        return self.digest.hex()

    def __str__(self) -> str:
        return self.to_hex()
