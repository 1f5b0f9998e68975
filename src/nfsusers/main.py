"""Provisioner FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Awaitable, Callable

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from nfsusers import __version__
from nfsusers.api.dependencies import init_provisioner, reset_provisioner
from nfsusers.api.v1 import health_router, volumes_router
from nfsusers.config import get_config
from nfsusers.errors import ProvisionerError
from nfsusers.logging import setup_logging
from nfsusers.logging_schema import LogEvent

_config = get_config()
setup_logging(_config.logging)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(
        "Starting custom dynamic pv provisioner",
        extra={"event": LogEvent.APP_STARTED, "version": __version__},
    )
    logger.info(
        "Configuration loaded",
        extra={"event": LogEvent.CONFIG_LOADED, "config": _config.summary()},
    )
    init_provisioner()
    yield
    logger.info("Shutting down provisioner", extra={"event": LogEvent.APP_STOPPED})
    reset_provisioner()


app = FastAPI(
    title="NFS Users Provisioner",
    description="Per-owner NFS volume provisioning",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(ProvisionerError)
async def provisioner_error_handler(request: Request, exc: ProvisionerError) -> JSONResponse:
    """Handle ProvisionerError exceptions."""
    logger.warning(
        "Provisioner error",
        extra={
            "event": LogEvent.PROVISIONER_ERROR,
            "error_code": exc.code.value,
            "error_message": str(exc),
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions with logging."""
    logger.exception(
        "Unhandled exception",
        extra={
            "event": LogEvent.UNHANDLED_EXCEPTION,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.middleware("http")
async def api_key_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Validate API key for non-health endpoints."""
    config = get_config()

    if request.url.path in ("/health", "/metrics"):
        return await call_next(request)

    if config.server.api_key:
        auth_header = request.headers.get("Authorization", "")
        expected = f"Bearer {config.server.api_key}"
        if auth_header != expected:
            return Response(
                content='{"detail": "Invalid API key"}',
                status_code=401,
                media_type="application/json",
            )

    return await call_next(request)


app.include_router(health_router)


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


app.include_router(volumes_router, prefix="/api/v1")


def main() -> None:
    """Run the provisioner server."""
    config = get_config()
    uvicorn.run(
        "nfsusers.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
