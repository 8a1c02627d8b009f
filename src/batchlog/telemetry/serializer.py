"""Cycle-tolerant JSON encoding for telemetry records."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any

from .events import EventRecord


logger = logging.getLogger(__name__)

CIRCULAR = "[Circular]"
MAX_DEPTH = 32


def _sanitize(value: Any, seen: set[int], depth: int) -> Any:
    """
    Copy ``value`` into plain JSON types.

    Containers already on the current path are replaced with a
    placeholder, as are branches deeper than MAX_DEPTH.
    """
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return _sanitize(value.value, seen, depth)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")

    if depth >= MAX_DEPTH:
        return "[Truncated]"

    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        marker = id(value)
        if marker in seen:
            return CIRCULAR
        seen.add(marker)
        try:
            if isinstance(value, Mapping):
                return {str(k): _sanitize(v, seen, depth + 1) for k, v in value.items()}
            return [_sanitize(v, seen, depth + 1) for v in value]
        finally:
            seen.discard(marker)

    return str(value)


def safe_dumps(value: Any) -> str:
    """Serialize arbitrary data to JSON, substituting placeholders for cycles."""
    return json.dumps(_sanitize(value, set(), 0), separators=(",", ":"), allow_nan=False)


def serialize_record(record: EventRecord) -> str:
    """
    Encode one record as a single JSON line.

    Never raises: a record that cannot be encoded at all is replaced by
    a minimal entry naming the failure.
    """
    try:
        return safe_dumps(record.to_dict())
    except Exception as e:
        logger.warning(f"Failed to serialize telemetry record: {e}")
        return json.dumps({
            "event": record.category.value,
            "timestamp": record.timestamp,
            "host": record.host,
            "serializationError": str(e),
        }, separators=(",", ":"), allow_nan=False)
