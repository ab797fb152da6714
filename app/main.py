from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import not_found, router
from logging_config import configure_logging
from services.gate import MeasurementGate, build_default_gate


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    try:
        yield
    finally:
        app.state.gate.close()
        build_default_gate.cache_clear()


async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> Response:
    # Unknown paths and wrong methods on /metrics are both plain 404s.
    if exc.status_code in (404, 405):
        return not_found()
    return Response(status_code=exc.status_code, headers=getattr(exc, "headers", None))


def create_app(gate: Optional[MeasurementGate] = None) -> FastAPI:
    """Build the exporter application.

    Without an explicit ``gate`` the default sensor is opened and initialized
    here, so an InitError surfaces before any listener is bound.
    """
    configure_logging()
    if gate is None:
        gate = build_default_gate()

    app = FastAPI(
        title="BME280 Meter",
        description="Prometheus exporter for a BME280 temperature, pressure and humidity sensor.",
        version="0.1.0",
        lifespan=lifespan,
        redirect_slashes=False,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.gate = gate
    app.state.registry = gate.registry
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.include_router(router)
    return app
