"""Configuration for batchlog."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from .errors import ConfigurationError


DEFAULT_ENDPOINT = "https://logs-01.loggly.com/bulk/{token}"

TRANSPORT_TYPES = ("http", "console", "file")

# Option names used by existing deployments
_ALIASES = {
    "intervalMsec": "interval_msec",
    "useRootScope": "use_root_scope",
    "captureUncaught": "capture_uncaught",
    "root": "use_root_scope",
    "uncaughtException": "capture_uncaught",
    "timeoutSeconds": "timeout_seconds",
    "transportConfig": "transport_config",
}


@dataclass
class BatchlogConfig:
    """Telemetry batcher configuration, defaults applied."""
    # Destination credential (required before start)
    token: str | None = None

    # Flush cadence
    interval_msec: int = 1000

    # Attach the log listener to the root logger instead of `scope`
    use_root_scope: bool = False
    scope: str = "app"

    # Request paths never reported as response events
    exclude: list[str] = field(default_factory=list)

    # Report the first uncaught exception, flush, then exit(1)
    capture_uncaught: bool = False

    # Delivery
    endpoint: str = DEFAULT_ENDPOINT
    timeout_seconds: float = 10.0
    transport: str = "http"  # http | console | file
    transport_config: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.interval_msec <= 0:
            raise ConfigurationError(f"interval_msec must be positive, got {self.interval_msec}")
        if self.transport not in TRANSPORT_TYPES:
            raise ConfigurationError(
                f"Unknown transport '{self.transport}', expected one of {', '.join(TRANSPORT_TYPES)}"
            )
        self.exclude = list(self.exclude)

    @property
    def url(self) -> str:
        """Endpoint with the token filled in."""
        return self.endpoint.format(token=self.token)

    def validate(self) -> None:
        """Check preconditions for starting the pipeline."""
        if not self.token:
            raise ConfigurationError("Missing ingestion API token")

    @classmethod
    def from_dict(cls, data: dict) -> BatchlogConfig:
        """Create config from dictionary, merging over defaults."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(f"Unknown option: {key}")
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str) -> BatchlogConfig:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> BatchlogConfig:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)
