"""Base transport interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Transport(ABC):
    """
    Abstract base class for transports.

    A transport delivers one already-encoded payload to its destination
    and raises ``TransportError`` if delivery failed. It never retries.
    """

    @abstractmethod
    async def post(self, payload: bytes) -> None:
        """Deliver a newline-delimited JSON payload."""
        ...

    async def close(self) -> None:
        """Release any resources held by the transport."""
        pass
