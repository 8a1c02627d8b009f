"""Tests for the telemetry plugin lifecycle and producers."""

import asyncio
import logging
import sys
import threading

import pytest

from batchlog.config import BatchlogConfig
from batchlog.errors import ConfigurationError
from batchlog.plugin import PluginState, TelemetryPlugin
from batchlog.telemetry.events import EventCategory, RequestInfo, now_ms

from tests.mocks import wait_until


def make_request(path: str) -> RequestInfo:
    return RequestInfo(path=path, method="get", request_id="r", received_at=now_ms())


class TestStartup:
    @pytest.mark.asyncio
    async def test_sends_initialized_event(self, plugin, transport):
        outcome = await plugin.start()

        assert outcome.success
        assert plugin.state == PluginState.RUNNING
        assert transport.calls == 1
        [record] = transport.batches[0]
        assert record["event"] == "server"
        assert record["tags"] == ["core", "initialized"]

        await plugin.stop()

    @pytest.mark.asyncio
    async def test_missing_token_fails_before_network(self, transport, exits):
        plugin = TelemetryPlugin(BatchlogConfig(), transport=transport, exit_process=exits.append)

        with pytest.raises(ConfigurationError):
            await plugin.start()

        assert transport.calls == 0
        assert plugin.state == PluginState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_failed_initialized_flush_is_reported(self, plugin, transport):
        transport.fail = True

        outcome = await plugin.start()

        assert not outcome.success
        assert plugin.state == PluginState.RUNNING
        await plugin.stop()

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self, plugin):
        await plugin.start()

        with pytest.raises(RuntimeError):
            await plugin.start()
        await plugin.stop()


class TestProducers:
    @pytest.mark.asyncio
    async def test_excluded_path_never_queued(self, plugin):
        await plugin.start()

        plugin.on_response(make_request("/health"), 200)
        assert len(plugin.queue) == 0

        plugin.on_response(make_request("/orders"), 200)
        [record] = plugin.queue.drain_all()
        assert record.category == EventCategory.RESPONSE
        assert record.status_code == 200
        assert record.context.path == "/orders"

        await plugin.stop()

    @pytest.mark.asyncio
    async def test_on_log(self, plugin):
        await plugin.start()

        plugin.on_log({"msg": "cache warmed"}, ["cache"])

        [record] = plugin.queue.drain_all()
        assert record.category == EventCategory.SERVER
        assert record.data == {"msg": "cache warmed"}
        assert record.tags == ("cache",)
        await plugin.stop()

    @pytest.mark.asyncio
    async def test_on_request_error(self, plugin, request_info):
        await plugin.start()

        plugin.on_request_error(request_info, ValueError("bad quantity"))

        [record] = plugin.queue.drain_all()
        assert record.category == EventCategory.ERROR
        assert record.error.message == "bad quantity"
        assert record.context.path == request_info.path
        await plugin.stop()

    @pytest.mark.asyncio
    async def test_ignored_before_start_and_after_stop(self, plugin):
        plugin.on_log("early")
        assert len(plugin.queue) == 0

        await plugin.start()
        await plugin.stop()

        plugin.on_log("late")
        plugin.on_response(make_request("/orders"), 200)
        assert len(plugin.queue) == 0

    @pytest.mark.asyncio
    async def test_periodic_delivery(self, transport, exits):
        plugin = TelemetryPlugin(
            BatchlogConfig(token="abc", interval_msec=10),
            transport=transport,
            exit_process=exits.append,
        )
        await plugin.start()

        plugin.on_log("one")
        plugin.on_log("two")
        await wait_until(lambda: transport.calls == 2)

        assert [r["data"] for r in transport.batches[1]] == ["one", "two"]
        await plugin.stop()


class TestLogScope:
    @pytest.mark.asyncio
    async def test_scoped_logger(self, plugin, app_logger):
        await plugin.start()

        app_logger.info("order placed", extra={"tags": ["orders"], "data": {"id": 7}})
        logging.getLogger("elsewhere").warning("not captured")

        [record] = plugin.queue.drain_all()
        assert record.data == {"id": 7}
        assert record.tags == ("orders",)
        await plugin.stop()

    @pytest.mark.asyncio
    async def test_default_tags_and_message(self, plugin, app_logger):
        await plugin.start()

        app_logger.warning("disk at %d%%", 91)

        [record] = plugin.queue.drain_all()
        assert record.data == "disk at 91%"
        assert record.tags == ("warning",)
        await plugin.stop()

    @pytest.mark.asyncio
    async def test_root_scope(self, transport, exits):
        plugin = TelemetryPlugin(
            BatchlogConfig(token="abc", interval_msec=60_000, use_root_scope=True),
            transport=transport,
            exit_process=exits.append,
        )
        await plugin.start()

        logging.getLogger("elsewhere").warning("captured")
        logging.getLogger("batchlog.telemetry.transmitter").warning("internal")

        records = plugin.queue.drain_all()
        assert [r.data for r in records] == ["captured"]
        await plugin.stop()

    @pytest.mark.asyncio
    async def test_stop_detaches_handler(self, plugin, app_logger):
        await plugin.start()
        await plugin.stop()

        assert not any(
            type(h).__name__ == "QueueLogHandler" for h in app_logger.handlers
        )


class TestShutdown:
    @pytest.mark.asyncio
    async def test_stop_does_not_flush(self, plugin, transport):
        await plugin.start()
        plugin.on_log("pending")

        await plugin.stop()
        await asyncio.sleep(0)

        assert plugin.state == PluginState.STOPPED
        assert transport.calls == 1
        assert transport.closed
        assert not plugin.trigger.running

    @pytest.mark.asyncio
    async def test_stop_is_terminal_and_idempotent(self, plugin):
        await plugin.start()
        await plugin.stop()
        await plugin.stop()

        assert plugin.state == PluginState.STOPPED
        with pytest.raises(RuntimeError):
            await plugin.start()

    @pytest.mark.asyncio
    async def test_stop_before_start(self, plugin, transport):
        await plugin.stop()

        assert plugin.state == PluginState.STOPPED
        assert transport.calls == 0


class TestUncaught:
    @pytest.mark.asyncio
    async def test_fault_flushes_then_exits(self, transport, exits):
        plugin = TelemetryPlugin(
            BatchlogConfig(token="abc", interval_msec=60_000, capture_uncaught=True),
            transport=transport,
            exit_process=exits.append,
        )
        await plugin.start()
        try:
            plugin.on_log("before the crash")

            task = plugin.fault_hook.notify(RuntimeError("worker died"))
            await task

            assert exits == [1]
            assert transport.calls == 2
            records = transport.batches[1]
            assert records[0]["data"] == "before the crash"
            uncaught = [r for r in records if r.get("tags") == ["core", "uncaught", "error"]]
            assert len(uncaught) == 1
            assert uncaught[0]["event"] == "error"
            assert uncaught[0]["error"]["message"] == "worker died"

            # Only the first fault is handled
            assert plugin.fault_hook.notify(RuntimeError("again")) is None
            assert exits == [1]
        finally:
            await plugin.stop()

    @pytest.mark.asyncio
    async def test_exits_even_when_flush_fails(self, transport, exits):
        plugin = TelemetryPlugin(
            BatchlogConfig(token="abc", interval_msec=60_000, capture_uncaught=True),
            transport=transport,
            exit_process=exits.append,
        )
        await plugin.start()
        try:
            transport.fail = True
            await plugin.fault_hook.notify(RuntimeError("worker died"))

            assert exits == [1]
            assert transport.calls == 2
        finally:
            await plugin.stop()

    @pytest.mark.asyncio
    async def test_loop_exception_handler(self, transport, exits):
        plugin = TelemetryPlugin(
            BatchlogConfig(token="abc", interval_msec=60_000, capture_uncaught=True),
            transport=transport,
            exit_process=exits.append,
        )
        await plugin.start()
        try:
            loop = asyncio.get_running_loop()
            loop.call_exception_handler({"message": "boom", "exception": RuntimeError("unhandled in task")})
            await wait_until(lambda: exits == [1])

            assert transport.batches[1][0]["error"]["message"] == "unhandled in task"
        finally:
            await plugin.stop()

    @pytest.mark.asyncio
    async def test_disabled(self, plugin, transport, exits):
        hook = sys.excepthook
        await plugin.start()

        assert plugin.fault_hook is None
        assert sys.excepthook is hook
        await plugin.stop()

        assert exits == []
        records = [r for batch in transport.batches for r in batch]
        assert not any("uncaught" in r.get("tags", []) for r in records)

    @pytest.mark.asyncio
    async def test_stop_restores_hooks(self, transport, exits):
        hook = sys.excepthook
        plugin = TelemetryPlugin(
            BatchlogConfig(token="abc", interval_msec=60_000, capture_uncaught=True),
            transport=transport,
            exit_process=exits.append,
        )
        await plugin.start()
        assert sys.excepthook is not hook

        await plugin.stop()
        assert sys.excepthook is hook

    @pytest.mark.asyncio
    async def test_thread_fault_waits_for_in_flight_flush(self, transport, exits):
        plugin = TelemetryPlugin(
            BatchlogConfig(token="abc", interval_msec=60_000, capture_uncaught=True),
            transport=transport,
            exit_process=exits.append,
        )
        await plugin.start()
        try:
            transport.gate = asyncio.Event()
            plugin.on_log("in flight")
            flushing = asyncio.create_task(plugin.flush())
            await wait_until(lambda: transport.calls == 2)

            def crash():
                raise RuntimeError("worker thread died")

            worker = threading.Thread(target=crash)
            worker.start()
            await wait_until(lambda: plugin.fault_hook.fired)
            await asyncio.sleep(0.05)

            # The fault flush queues behind the one already sending
            assert transport.calls == 2
            assert exits == []

            transport.gate.set()
            await flushing
            await wait_until(lambda: exits == [1])
            await asyncio.to_thread(worker.join, 1.0)

            assert transport.max_active == 1
            assert transport.calls == 3
            [uncaught] = transport.batches[2]
            assert uncaught["tags"] == ["core", "uncaught", "error"]
            assert uncaught["error"]["message"] == "worker thread died"
        finally:
            await plugin.stop()
