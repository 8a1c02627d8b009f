"""Console transport for development/debugging."""

from __future__ import annotations

import sys
from dataclasses import dataclass

from .base import Transport


@dataclass
class ConsoleTransport(Transport):
    """
    Transport that writes payload lines to console (stdout/stderr).

    Useful for development and debugging.
    """
    # Output destination
    stream: str = "stdout"  # stdout | stderr

    # Prefix for each line
    prefix: str = "[TELEMETRY] "

    async def post(self, payload: bytes) -> None:
        out = sys.stdout if self.stream == "stdout" else sys.stderr

        for line in payload.decode("utf-8").splitlines():
            print(f"{self.prefix}{line}", file=out)
        out.flush()
