"""
Key Sanitization

Makes user-supplied file names and path components safe to embed in
filesystem paths and S3 object keys on every platform.

Both functions are idempotent: sanitizing an already sanitized value
returns it unchanged.
"""

from __future__ import annotations

from typing import Final

UNSAFE_CHARS: Final[str] = '/\\:*?"<>| '
_TABLE: Final[dict[int, str]] = str.maketrans({ch: "_" for ch in UNSAFE_CHARS})
# Relative path segments that would collapse into a parent directory
_DOT_SEGMENTS: Final[frozenset[str]] = frozenset({".", ".."})


def sanitize_filename(filename: str) -> str:
    """
    Replace ``/ \\ : * ? " < > |`` and spaces with underscores.

    A name made only of ``.`` or ``..`` becomes the same number of
    underscores.
    """
    cleaned = filename.translate(_TABLE)
    if cleaned in _DOT_SEGMENTS:
        return "_" * len(cleaned)
    return cleaned


def sanitize_path_component(component: str) -> str:
    """Like sanitize_filename, additionally lowercased."""
    return sanitize_filename(component).lower()


def is_sanitized(value: str) -> bool:
    return value not in _DOT_SEGMENTS and not any(ch in UNSAFE_CHARS for ch in value)
