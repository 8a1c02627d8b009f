"""HTTP bulk ingestion transport."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from ...errors import TransportError
from .base import Transport


logger = logging.getLogger(__name__)


@dataclass
class HttpTransport(Transport):
    """
    POSTs payloads to a bulk ingestion URL.

    A fresh ``httpx.AsyncClient`` is opened per call so the transport is
    not tied to the event loop it was created on.

    Config:
        url: Full endpoint, credential already embedded
        timeout_seconds: Per-request timeout
    """
    url: str
    timeout_seconds: float = 10.0

    # Injected in tests (httpx.MockTransport)
    http_transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    async def post(self, payload: bytes) -> None:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self.http_transport,
            ) as client:
                response = await client.post(
                    self.url,
                    content=payload,
                    headers={"content-type": "application/json"},
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Request to ingestion endpoint failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"Ingestion endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
