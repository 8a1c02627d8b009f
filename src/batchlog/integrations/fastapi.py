"""FastAPI/Starlette integration."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..plugin import TelemetryPlugin
from ..telemetry.events import RequestInfo, now_ms


logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def extract_request_info(request: Request) -> RequestInfo:
    """Describe a Starlette request for the event factory."""
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    received_at = getattr(request.state, "received_at", None) or now_ms()
    return RequestInfo(
        path=request.url.path,
        method=request.method.lower(),
        request_id=request_id,
        received_at=received_at,
        query=dict(request.query_params),
    )


class TelemetryMiddleware(BaseHTTPMiddleware):
    """
    Reports every request as a response event, and requests that raised
    as an error event followed by a 500 response event.

    The exception is re-raised so the app's normal error handling still
    produces the response.
    """

    def __init__(self, app, plugin: TelemetryPlugin) -> None:
        super().__init__(app)
        self.plugin = plugin

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.received_at = now_ms()
        request.state.request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        try:
            response = await call_next(request)
        except Exception as exc:
            info = extract_request_info(request)
            self.plugin.on_request_error(info, exc)
            self.plugin.on_response(info, 500)
            raise

        self.plugin.on_response(extract_request_info(request), response.status_code)
        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        return response


def instrument(app: FastAPI, plugin: TelemetryPlugin) -> None:
    """Attach the telemetry middleware to an app."""
    app.add_middleware(TelemetryMiddleware, plugin=plugin)


@asynccontextmanager
async def telemetry_lifespan(plugin: TelemetryPlugin) -> AsyncIterator[TelemetryPlugin]:
    """
    Run the plugin for the lifetime of an app.

    Use from the app's own lifespan:

        @asynccontextmanager
        async def lifespan(app):
            async with telemetry_lifespan(plugin):
                yield
    """
    await plugin.start()
    try:
        yield plugin
    finally:
        await plugin.stop()
