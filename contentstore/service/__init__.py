"""
Service module: object lifecycle orchestration and the content facade.
"""

from contentstore.service.content import ContentService, UploadedContent
from contentstore.service.events import (
    ContentEvent,
    EventKind,
    EventSink,
    HookEventSink,
    LoggingEventSink,
    NoopEventSink,
)
from contentstore.service.objects import ObjectManager

__all__ = [
    "ContentService",
    "UploadedContent",
    "ObjectManager",
    "ContentEvent",
    "EventKind",
    "EventSink",
    "NoopEventSink",
    "LoggingEventSink",
    "HookEventSink",
]
