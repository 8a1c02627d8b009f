"""Telemetry plugin - wires producers, queue and flush trigger together."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .config import BatchlogConfig
from .integrations.log_handler import QueueLogHandler
from .telemetry.events import (
    RequestInfo,
    error_event,
    response_event,
    server_event,
)
from .telemetry.faults import FatalFaultHook
from .telemetry.queue import BatchQueue
from .telemetry.transmitter import FlushOutcome, Transmitter
from .telemetry.transports import ConsoleTransport, FileTransport, HttpTransport, Transport
from .telemetry.trigger import FlushTrigger


logger = logging.getLogger(__name__)

PLUGIN_TAG = "core"
INITIALIZED_TAGS = (PLUGIN_TAG, "initialized")
UNCAUGHT_TAGS = (PLUGIN_TAG, "uncaught", "error")


class PluginState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


def create_transport(config: BatchlogConfig) -> Transport:
    """Build the transport named by the config."""
    if config.transport == "console":
        return ConsoleTransport(**config.transport_config)
    if config.transport == "file":
        return FileTransport(**config.transport_config)
    return HttpTransport(
        url=config.url,
        timeout_seconds=config.timeout_seconds,
        **config.transport_config,
    )


def terminate(status: int) -> None:
    """Exit the process immediately after flushing log handlers."""
    logging.shutdown()
    os._exit(status)


@dataclass
class TelemetryPlugin:
    """
    Owns one batching pipeline for a host application.

    Lifecycle: UNINITIALIZED -> RUNNING -> STOPPING -> STOPPED. Producer
    calls (``on_log``, ``on_response``, ``on_request_error``) are only
    honoured while RUNNING.

    Usage:
        plugin = TelemetryPlugin(BatchlogConfig(token="..."))
        await plugin.start()
        plugin.on_log({"msg": "hello"}, ["demo"])
        ...
        await plugin.stop()
    """
    config: BatchlogConfig

    # Defaults to create_transport(config)
    transport: Transport | None = None

    # Called with the exit status after an uncaught fault was reported
    exit_process: Callable[[int], None] = terminate

    # Internal state
    queue: BatchQueue = field(default_factory=BatchQueue, init=False)
    _state: PluginState = field(default=PluginState.UNINITIALIZED, init=False)
    _trigger: FlushTrigger | None = field(default=None, init=False)
    _fault_hook: FatalFaultHook | None = field(default=None, init=False)
    _log_handler: QueueLogHandler | None = field(default=None, init=False)
    _log_source: logging.Logger | None = field(default=None, init=False)

    @property
    def state(self) -> PluginState:
        return self._state

    @property
    def trigger(self) -> FlushTrigger | None:
        return self._trigger

    @property
    def fault_hook(self) -> FatalFaultHook | None:
        return self._fault_hook

    async def start(self) -> FlushOutcome:
        """
        Start the pipeline.

        Fails with ConfigurationError before any network call when the
        token is missing. Otherwise sends one "initialized" event and
        returns the outcome of that flush.
        """
        if self._state != PluginState.UNINITIALIZED:
            raise RuntimeError(f"Telemetry plugin cannot start from state {self._state.value}")

        self.config.validate()

        if self.transport is None:
            self.transport = create_transport(self.config)
        self._trigger = FlushTrigger(
            queue=self.queue,
            transmitter=Transmitter(self.transport),
            interval_msec=self.config.interval_msec,
        )

        self._log_source = logging.getLogger() if self.config.use_root_scope else logging.getLogger(self.config.scope)
        self._log_handler = QueueLogHandler(self)
        self._log_source.addHandler(self._log_handler)

        self._trigger.start()

        if self.config.capture_uncaught:
            self._fault_hook = FatalFaultHook(handler=self._on_uncaught)
            self._fault_hook.install()

        self._state = PluginState.RUNNING

        self.queue.append(server_event(tags=INITIALIZED_TAGS))
        outcome = await self._trigger.force_flush()
        if not outcome.success:
            logger.warning(f"Initialization event was not delivered: {outcome.error}")

        logger.info(f"Telemetry plugin started (transport={self.config.transport})")
        return outcome

    async def stop(self) -> None:
        """Stop periodic flushing. Pending events are not flushed."""
        if self._state in (PluginState.STOPPING, PluginState.STOPPED):
            return
        if self._state == PluginState.UNINITIALIZED:
            self._state = PluginState.STOPPED
            return

        self._state = PluginState.STOPPING

        if self._log_source is not None and self._log_handler is not None:
            self._log_source.removeHandler(self._log_handler)
        self._log_handler = None
        self._log_source = None

        if self._trigger is not None:
            self._trigger.stop()
        if self._fault_hook is not None:
            self._fault_hook.uninstall()
        if self.transport is not None:
            await self.transport.close()

        self._state = PluginState.STOPPED
        logger.info(f"Telemetry plugin stopped ({len(self.queue)} events left unsent)")

    async def flush(self) -> FlushOutcome:
        """Force a flush of everything pending."""
        if self._trigger is None:
            return FlushOutcome(success=True)
        return await self._trigger.force_flush()

    # ----- Producers -----

    def on_log(self, data: Any = None, tags: list[str] | tuple[str, ...] | None = None) -> None:
        """Record a generic server log event."""
        if self._state != PluginState.RUNNING:
            return
        self.queue.append(server_event(data=data, tags=tags))

    def on_response(self, request: RequestInfo, status_code: int) -> None:
        """Record a completed request unless its path is excluded."""
        if self._state != PluginState.RUNNING:
            return
        if request.path in self.config.exclude:
            return
        self.queue.append(response_event(request, status_code))

    def on_request_error(self, request: RequestInfo, exc: BaseException) -> None:
        """Record an exception raised while handling a request."""
        if self._state != PluginState.RUNNING:
            return
        self.queue.append(error_event(exc, request=request))

    async def _on_uncaught(self, exc: BaseException) -> None:
        self.queue.append(error_event(exc, tags=UNCAUGHT_TAGS))
        try:
            await self.flush()
        except Exception as e:
            logger.error(f"Final flush after uncaught exception failed: {e}")
        finally:
            self.exit_process(1)

    @property
    def stats(self) -> dict:
        """Get pipeline statistics."""
        return {
            "state": self._state.value,
            **(self._trigger.stats if self._trigger else {"pending": len(self.queue)}),
        }
