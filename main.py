#!/usr/bin/env python3
"""
nimbus: FastAPI service that compiles user components into static preview
bundles and publishes them to S3/CloudFront.

Configuration is read from the environment once, at startup. A missing
required setting stops the process before it serves anything.
"""
import os
from typing import Optional

from fastapi import FastAPI

from nimbus.api.build import router as build_router
from nimbus.api.metrics import router as metrics_router
from nimbus.core.config import NimbusConfig, load_config
from nimbus.core.logging import setup_logging
from nimbus.core.object_store import ObjectStore, S3ObjectStore
from nimbus.core.pipeline import Pipeline
from nimbus.core.request_logging import RequestLoggingMiddleware
from nimbus.core.tool_runner import SubprocessToolRunner, ToolRunner

LISTEN_HOST = os.environ.get("LISTEN_HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

VERSION = "1.0.0"


def create_app(
    config: Optional[NimbusConfig] = None,
    tool_runner: Optional[ToolRunner] = None,
    object_store: Optional[ObjectStore] = None,
) -> FastAPI:
    """
    Build the application.

    Production passes nothing; tests inject a synthetic config, a scripted
    tool runner and an in-memory store.

    Raises:
        ConfigurationError: If config is not given and the environment is incomplete
    """
    config = config or load_config()
    setup_logging(config.log_level)

    pipeline = Pipeline(
        config=config,
        tool_runner=tool_runner or SubprocessToolRunner(timeout=config.tool_timeout_s),
        object_store=object_store or S3ObjectStore(config.bucket_name, config.region),
    )

    # Run cleanup at startup (safe, won't crash)
    pipeline.workspace_manager.cleanup_stale()

    app = FastAPI(
        title="nimbus",
        description="Compile React components into static preview bundles",
        version=VERSION,
    )
    app.state.config = config
    app.state.pipeline = pipeline

    # Add request logging middleware (must be first to capture all requests)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(build_router)
    app.include_router(metrics_router)

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=LISTEN_HOST, port=PORT)
