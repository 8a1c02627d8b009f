"""
batchlog - batched telemetry shipping for web services

Collects log lines, request outcomes and error traces in memory and
periodically ships them to a bulk ingestion endpoint:
- One newline-delimited JSON payload per flush
- At most one flush in flight
- Best-effort delivery (failed batches are dropped)
"""

from .config import BatchlogConfig
from .errors import BatchlogError, ConfigurationError, TransportError
from .plugin import PluginState, TelemetryPlugin

__version__ = "0.1.0"

__all__ = [
    "BatchlogConfig",
    "BatchlogError",
    "ConfigurationError",
    "TransportError",
    "PluginState",
    "TelemetryPlugin",
]
