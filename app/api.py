"""HTTP route definitions for the exporter."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response, status

from errors import EncodingError, SensorError
from services.gate import MeasurementGate
from services.registry import CONTENT_TYPE, MetricRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


def get_gate(request: Request) -> MeasurementGate:
    return request.app.state.gate


def get_registry(request: Request) -> MetricRegistry:
    return request.app.state.registry


def not_found() -> Response:
    return Response(status_code=status.HTTP_404_NOT_FOUND)


@router.get(
    "/metrics",
    summary="Read the sensor and expose its values in Prometheus text format.",
)
def metrics(
    gate: MeasurementGate = Depends(get_gate),
    registry: MetricRegistry = Depends(get_registry),
) -> Response:
    # Plain ``def``: FastAPI runs it in the threadpool, off the event loop.
    try:
        gate.measure()
    except SensorError as exc:
        logger.warning(
            "Scrape failed",
            extra={"status": status.HTTP_503_SERVICE_UNAVAILABLE, "reason": str(exc)},
        )
        return Response(
            content="sensor read failed\n",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            media_type="text/plain",
        )

    try:
        body = registry.encode()
    except EncodingError as exc:
        logger.error(
            "Metric encoding failed",
            extra={"status": status.HTTP_500_INTERNAL_SERVER_ERROR, "reason": str(exc)},
        )
        return Response(
            content="metric encoding failed\n",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            media_type="text/plain",
        )

    return Response(content=body, media_type=CONTENT_TYPE)
