"""Transports - destinations for encoded telemetry batches."""

from .base import Transport
from .console import ConsoleTransport
from .file import FileTransport
from .http import HttpTransport

__all__ = [
    "Transport",
    "ConsoleTransport",
    "FileTransport",
    "HttpTransport",
]
