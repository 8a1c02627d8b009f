"""Batch encoding and delivery."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import TransportError
from .events import EventRecord
from .serializer import serialize_record
from .transports.base import Transport


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FlushOutcome:
    """Result of one flush attempt."""
    success: bool
    event_count: int = 0
    error: str | None = None

    @property
    def skipped(self) -> bool:
        """True when nothing was pending and no call was made."""
        return self.success and self.event_count == 0


def encode_batch(batch: list[EventRecord]) -> bytes:
    """Join independently serialized records into one NDJSON payload."""
    return "\n".join(serialize_record(record) for record in batch).encode("utf-8")


@dataclass
class Transmitter:
    """
    Sends drained batches through a transport.

    Failed batches are dropped: there is no retry and nothing is put
    back on the queue.
    """
    transport: Transport

    async def send(self, batch: list[EventRecord]) -> FlushOutcome:
        if not batch:
            return FlushOutcome(success=True)

        payload = encode_batch(batch)

        try:
            await self.transport.post(payload)
        except TransportError as e:
            logger.warning(f"Dropping telemetry batch of {len(batch)} events: {e}")
            return FlushOutcome(success=False, event_count=len(batch), error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected transport error, dropping {len(batch)} events: {e}")
            return FlushOutcome(success=False, event_count=len(batch), error=str(e))

        return FlushOutcome(success=True, event_count=len(batch))
