"""
Status Transition Rules for Objects and Contents

Object lifecycle:
    CREATED    -> UPLOADING   : upload started
    UPLOADING  -> UPLOADED    : write confirmed and metadata refreshed
    UPLOADING  -> FAILED      : backend write failed
    FAILED     -> UPLOADING   : upload retried
    CREATED    -> UPLOADED    : bytes sent through a direct upload URL, confirmed
                                 by a metadata refresh
    UPLOADED   -> PROCESSING  : derivation/processing started
    PROCESSING -> PROCESSED   : processing finished
    PROCESSING -> FAILED      : processing failed
    any non-terminal -> DELETED

Content lifecycle:
    CREATED  -> UPLOADED : an object of the content was uploaded
    any      -> DELETED

Setting a status to its current value is always accepted.
"""

from __future__ import annotations

from typing import FrozenSet, Mapping

from contentstore.core.models import ContentStatus, ObjectStatus

_O = ObjectStatus

OBJECT_TRANSITIONS: Mapping[ObjectStatus, FrozenSet[ObjectStatus]] = {
    _O.CREATED: frozenset({_O.UPLOADING, _O.UPLOADED, _O.FAILED, _O.DELETED}),
    _O.UPLOADING: frozenset({_O.UPLOADED, _O.FAILED, _O.DELETED}),
    _O.UPLOADED: frozenset({_O.PROCESSING, _O.PROCESSED, _O.FAILED, _O.DELETED}),
    _O.PROCESSING: frozenset({_O.PROCESSED, _O.FAILED, _O.DELETED}),
    _O.PROCESSED: frozenset({_O.PROCESSING, _O.DELETED}),
    _O.FAILED: frozenset({_O.UPLOADING, _O.UPLOADED, _O.PROCESSING, _O.DELETED}),
    _O.DELETED: frozenset(),
}

CONTENT_TRANSITIONS: Mapping[ContentStatus, FrozenSet[ContentStatus]] = {
    ContentStatus.CREATED: frozenset({ContentStatus.UPLOADED, ContentStatus.DELETED}),
    ContentStatus.UPLOADED: frozenset({ContentStatus.DELETED}),
    ContentStatus.DELETED: frozenset(),
}

UPLOADABLE: FrozenSet[ObjectStatus] = frozenset({_O.CREATED, _O.UPLOADING, _O.FAILED})
DOWNLOADABLE: FrozenSet[ObjectStatus] = frozenset({_O.UPLOADED, _O.PROCESSED})


def can_upload(status: ObjectStatus) -> bool:
    """Bytes may be (re)written while the object has no confirmed upload."""
    return status in UPLOADABLE


def can_download(status: ObjectStatus) -> bool:
    return status in DOWNLOADABLE


def can_transition_object(current: ObjectStatus, target: ObjectStatus) -> bool:
    return current is target or target in OBJECT_TRANSITIONS[current]


def can_transition_content(current: ContentStatus, target: ContentStatus) -> bool:
    return current is target or target in CONTENT_TRANSITIONS[current]


def parse_object_status(value: str) -> ObjectStatus:
    """Raises ValueError for unknown status strings."""
    return ObjectStatus(value.strip().lower())


def parse_content_status(value: str) -> ContentStatus:
    """Raises ValueError for unknown status strings."""
    return ContentStatus(value.strip().lower())
