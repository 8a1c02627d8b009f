"""Pending event buffer with atomic drain."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .events import EventRecord


@dataclass
class BatchQueue:
    """
    Ordered, append-only buffer of events awaiting transmission.

    ``drain_all`` swaps the buffer for a fresh list under a lock, so an
    append racing a drain lands either in the drained batch or in the
    new buffer, never both and never neither. Appends can come from
    logging calls on worker threads, hence the threading lock rather
    than relying on the event loop alone.
    """
    _buffer: list[EventRecord] = field(default_factory=list, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def append(self, record: EventRecord) -> None:
        """Add a record to the end of the buffer."""
        with self._lock:
            self._buffer.append(record)

    def drain_all(self) -> list[EventRecord]:
        """Return every pending record and reset the buffer to empty."""
        with self._lock:
            batch, self._buffer = self._buffer, []
        return batch

    def __len__(self) -> int:
        return len(self._buffer)
