"""Demo FastAPI application instrumented with batchlog.

Configuration is read from the YAML file named by BATCHLOG_CONFIG, with
BATCHLOG_TOKEN overriding the token.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .config import BatchlogConfig
from .integrations.fastapi import instrument, telemetry_lifespan
from .plugin import TelemetryPlugin


logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    telemetry: dict[str, Any]


def load_config() -> BatchlogConfig:
    """Load config from environment."""
    path = os.environ.get("BATCHLOG_CONFIG")
    config = BatchlogConfig.from_yaml(path) if path else BatchlogConfig()
    token = os.environ.get("BATCHLOG_TOKEN")
    if token:
        config.token = token
    return config


def create_app(plugin: TelemetryPlugin) -> FastAPI:
    """Create the demo app around a plugin."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting demo service...")
        async with telemetry_lifespan(plugin):
            yield
        logger.info("Demo service stopped")

    app = FastAPI(
        title="batchlog demo",
        description="Sample service whose logs, responses and errors are shipped in batches.",
        version="0.1.0",
        lifespan=lifespan,
    )
    instrument(app, plugin)

    app_logger = logging.getLogger(plugin.config.scope)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint."""
        return HealthResponse(status="healthy", telemetry=plugin.stats)

    @app.get("/hello/{name}")
    async def hello(name: str):
        app_logger.info(f"Greeting {name}", extra={"tags": ["demo", "greeting"]})
        return {"message": f"Hello, {name}"}

    @app.get("/missing")
    async def missing():
        raise HTTPException(status_code=404, detail="Nothing here")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("Demo failure")

    return app


def run():
    """Run the demo service with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(TelemetryPlugin(load_config()))
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
