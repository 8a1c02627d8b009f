"""Test doubles for transports."""

from .transport import RecordingTransport, wait_until

__all__ = [
    "RecordingTransport",
    "wait_until",
]
