"""Exceptions raised by batchlog."""

from __future__ import annotations


class BatchlogError(Exception):
    """Base class for batchlog errors."""


class ConfigurationError(BatchlogError):
    """Raised when settings are missing or invalid."""


class TransportError(BatchlogError):
    """Raised by a transport when a payload could not be delivered."""
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
