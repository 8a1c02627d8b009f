"""Bridge from the logging module to the telemetry queue."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..plugin import TelemetryPlugin


# Records from these loggers are never queued, so that delivery
# failures reported by batchlog itself cannot feed back into the queue.
INTERNAL_PREFIX = "batchlog"


class QueueLogHandler(logging.Handler):
    """
    Logging handler that turns log records into server events.

    The event data is the ``data`` passed via ``extra`` when present,
    otherwise the formatted message. Tags come from ``extra={"tags": [...]}``
    or default to the lowercased level name.
    """

    def __init__(self, plugin: TelemetryPlugin, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.plugin = plugin

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == INTERNAL_PREFIX or record.name.startswith(INTERNAL_PREFIX + "."):
            return False
        return super().filter(record)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            data = getattr(record, "data", None)
            if data is None:
                data = self.format(record)
            tags = getattr(record, "tags", None) or [record.levelname.lower()]
            self.plugin.on_log(data, tags)
        except Exception:
            self.handleError(record)
