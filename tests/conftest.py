"""Shared test fixtures for batchlog tests."""

import logging

import pytest

from batchlog.config import BatchlogConfig
from batchlog.plugin import TelemetryPlugin
from batchlog.telemetry.events import RequestInfo, now_ms
from batchlog.telemetry.queue import BatchQueue
from batchlog.telemetry.transmitter import Transmitter

from tests.mocks import RecordingTransport


# =============================================================================
# Pipeline Fixtures
# =============================================================================

@pytest.fixture
def transport() -> RecordingTransport:
    """Transport that records payloads instead of sending them."""
    return RecordingTransport()


@pytest.fixture
def queue() -> BatchQueue:
    return BatchQueue()


@pytest.fixture
def transmitter(transport) -> Transmitter:
    return Transmitter(transport)


@pytest.fixture
def config() -> BatchlogConfig:
    """Config with a token and an interval long enough to never tick in a test."""
    return BatchlogConfig(token="test-token", interval_msec=60_000, exclude=["/health"])


@pytest.fixture
def exits() -> list[int]:
    """Exit statuses passed to the plugin instead of terminating."""
    return []


@pytest.fixture
def plugin(config, transport, exits) -> TelemetryPlugin:
    return TelemetryPlugin(config, transport=transport, exit_process=exits.append)


# =============================================================================
# Request Fixtures
# =============================================================================

@pytest.fixture
def request_info() -> RequestInfo:
    return RequestInfo(
        path="/orders",
        method="get",
        request_id="req-1",
        received_at=now_ms() - 5,
        query={"page": "2"},
    )


@pytest.fixture
def app_logger():
    """The default log scope, opened up to INFO for the test."""
    logger = logging.getLogger("app")
    previous = logger.level
    logger.setLevel(logging.INFO)
    yield logger
    logger.setLevel(previous)
