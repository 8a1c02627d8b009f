"""File-based transport for telemetry."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ...errors import TransportError
from .base import Transport


@dataclass
class FileTransport(Transport):
    """
    Transport that appends payloads to a file (JSONL format).

    Each record is already a single JSON line, so payloads are written
    as-is followed by a newline.
    """
    path: str
    encoding: str = "utf-8"

    async def post(self, payload: bytes) -> None:
        try:
            target = Path(self.path)
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "a", encoding=self.encoding) as f:
                f.write(payload.decode("utf-8"))
                f.write("\n")
        except OSError as e:
            raise TransportError(f"Failed to write telemetry file {self.path}: {e}") from e
