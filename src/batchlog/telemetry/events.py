"""Telemetry event types."""

from __future__ import annotations

import socket
import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any


class EventCategory(str, Enum):
    """Kind of activity an event describes."""
    SERVER = "server"
    RESPONSE = "response"
    ERROR = "error"


def now_ms() -> int:
    """Current wall clock time in milliseconds since epoch."""
    return int(time.time() * 1000)


def _snapshot(value: Any) -> Any:
    """Shallow copy of dicts and lists taken when a record is created."""
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, list):
        return list(value)
    return value


@lru_cache(maxsize=1)
def host_identity() -> str:
    """Hostname of this process, resolved once."""
    return socket.gethostname()


@dataclass(frozen=True, slots=True)
class RequestInfo:
    """
    Host-neutral description of an HTTP request.

    Integrations build one of these from their framework's request
    object so the event factory never sees framework types.
    """
    path: str
    method: str
    request_id: str
    received_at: int  # ms since epoch
    query: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Request fields captured on an event."""
    path: str
    method: str
    request_id: str
    received_at: int
    elapsed_ms: int
    query: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "query": self.query,
            "method": self.method,
            "request": {
                "id": self.request_id,
                "received": self.received_at,
                "elapsed": self.elapsed_ms,
            },
        }


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """Details of an exception attached to an error event."""
    message: str
    stack: str | None = None
    data: Any = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorInfo:
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(
            message=str(exc) or type(exc).__name__,
            stack=stack,
            data=_snapshot(getattr(exc, "data", None)),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"message": self.message}
        if self.stack is not None:
            d["stack"] = self.stack
        if self.data is not None:
            d["data"] = self.data
        return d


@dataclass(frozen=True, slots=True)
class EventRecord:
    """
    A single normalized telemetry entry ready for transmission.

    Only ``category``, ``timestamp`` and ``host`` are always set. Every
    other field is None/empty unless it applies to the event, and
    ``to_dict`` leaves absent fields out of the wire form entirely.
    """
    category: EventCategory
    timestamp: int
    host: str

    tags: tuple[str, ...] = ()

    # Payload of a server log event
    data: Any = None

    # Present only when the event came from a request
    context: RequestContext | None = None

    # Response events only
    status_code: int | None = None

    # Error events only
    error: ErrorInfo | None = None

    @classmethod
    def create(
        cls,
        category: EventCategory,
        request: RequestInfo | None = None,
        **kwargs,
    ) -> EventRecord:
        """Factory stamping timestamp, host and request context."""
        now = now_ms()
        context = None
        if request is not None:
            context = RequestContext(
                path=request.path,
                method=request.method,
                request_id=request.request_id,
                received_at=request.received_at,
                elapsed_ms=now - request.received_at,
                query=dict(request.query),
            )

        if "data" in kwargs:
            kwargs["data"] = _snapshot(kwargs["data"])
        if "tags" in kwargs and kwargs["tags"] is not None:
            kwargs["tags"] = tuple(kwargs["tags"])

        return cls(
            category=category,
            timestamp=now,
            host=host_identity(),
            context=context,
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the ingestion wire form."""
        d: dict[str, Any] = {
            "event": self.category.value,
            "timestamp": self.timestamp,
            "host": self.host,
        }
        if self.tags:
            d["tags"] = list(self.tags)
        if self.data is not None:
            d["data"] = self.data
        if self.context is not None:
            d.update(self.context.to_dict())
        if self.status_code is not None:
            d["code"] = self.status_code
        if self.error is not None:
            d["error"] = self.error.to_dict()
        return d


def server_event(data: Any = None, tags: list[str] | tuple[str, ...] | None = None) -> EventRecord:
    """Build a generic server log event."""
    return EventRecord.create(EventCategory.SERVER, data=data, tags=tags or ())


def response_event(request: RequestInfo, status_code: int) -> EventRecord:
    """Build a completed-request event."""
    return EventRecord.create(EventCategory.RESPONSE, request=request, status_code=status_code)


def error_event(
    exc: BaseException,
    request: RequestInfo | None = None,
    tags: list[str] | tuple[str, ...] | None = None,
) -> EventRecord:
    """Build an error event from an exception, with request context if any."""
    return EventRecord.create(
        EventCategory.ERROR,
        request=request,
        error=ErrorInfo.from_exception(exc),
        tags=tags or (),
    )
