"""Telemetry pipeline - event records, batching and delivery."""

from .events import EventCategory, EventRecord, ErrorInfo, RequestContext, RequestInfo
from .queue import BatchQueue
from .transmitter import FlushOutcome, Transmitter
from .trigger import FlushTrigger

__all__ = [
    "EventCategory",
    "EventRecord",
    "ErrorInfo",
    "RequestContext",
    "RequestInfo",
    "BatchQueue",
    "FlushOutcome",
    "Transmitter",
    "FlushTrigger",
]
