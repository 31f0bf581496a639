"""
Lifecycle Events

Every successful create, update, delete and upload performed through the
ContentService is published as a ContentEvent. Sinks are best-effort
observers: a failing sink is logged and never fails the operation that
produced the event.

Sinks:
    NoopEventSink     default, discards everything
    LoggingEventSink  one structured log line per event
    HookEventSink     dispatches to registered sync/async callbacks
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from uuid import UUID

from contentstore.core.types import utcnow
from contentstore.observability.logging import LogLevel, StructuredLogger

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    CONTENT_CREATED = "content_created"
    CONTENT_UPDATED = "content_updated"
    CONTENT_DELETED = "content_deleted"
    CONTENT_STATUS_CHANGED = "content_status_changed"
    OBJECT_CREATED = "object_created"
    OBJECT_UPLOADED = "object_uploaded"
    OBJECT_DELETED = "object_deleted"


@dataclass(frozen=True, slots=True)
class ContentEvent:
    """Immutable record of one lifecycle change."""

    kind: EventKind
    content_id: Optional[UUID] = None
    object_id: Optional[UUID] = None
    tenant_id: Optional[UUID] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "content_id": str(self.content_id) if self.content_id else None,
            "object_id": str(self.object_id) if self.object_id else None,
            "tenant_id": str(self.tenant_id) if self.tenant_id else None,
            "data": dict(self.data),
            "timestamp": self.timestamp.isoformat(),
        }


class EventSink(ABC):
    """Receiver of lifecycle events."""

    @abstractmethod
    async def publish(self, event: ContentEvent) -> None:
        ...


class NoopEventSink(EventSink):
    async def publish(self, event: ContentEvent) -> None:
        return None


class LoggingEventSink(EventSink):
    """Writes each event through the structured logger."""

    __slots__ = ("_logger", "_level")

    def __init__(
        self,
        logger: Optional[StructuredLogger] = None,
        level: LogLevel = LogLevel.INFO,
    ) -> None:
        self._logger = logger or StructuredLogger("contentstore.events")
        self._level = level

    async def publish(self, event: ContentEvent) -> None:
        fields = event.to_dict()
        fields["event"] = fields.pop("kind")
        fields.pop("timestamp")
        if self._level is LogLevel.DEBUG:
            self._logger.debug(event.kind.value, **fields)
        else:
            self._logger.info(event.kind.value, **fields)


Hook = Callable[[ContentEvent], Union[None, Awaitable[None]]]


class HookEventSink(EventSink):
    """
    Dispatches events to callbacks registered per kind.

    Callbacks run in registration order. A raising callback stops the
    remaining callbacks for that event; the publisher logs the failure.
    """

    __slots__ = ("_hooks",)

    def __init__(self) -> None:
        self._hooks: Dict[EventKind, List[Hook]] = defaultdict(list)

    def register(self, kind: EventKind, callback: Hook) -> None:
        self._hooks[kind].append(callback)

    async def publish(self, event: ContentEvent) -> None:
        for callback in self._hooks.get(event.kind, ()):
            outcome = callback(event)
            if inspect.isawaitable(outcome):
                await outcome


async def publish_safely(sink: EventSink, event: ContentEvent) -> None:
    """Publish to a sink, logging and discarding any sink failure."""
    try:
        await sink.publish(event)
    except Exception as exc:
        logger.error(
            "Event sink %s failed for %s: %s",
            type(sink).__name__, event.kind.value, exc, exc_info=True,
        )


__all__ = [
    "EventKind",
    "ContentEvent",
    "EventSink",
    "NoopEventSink",
    "LoggingEventSink",
    "HookEventSink",
    "publish_safely",
]
