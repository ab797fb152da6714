"""Prometheus gauges for the three BME280 channels."""

from __future__ import annotations

from threading import Lock
from typing import Dict

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

from errors import EncodingError
from models.measurement import Measurement

CONTENT_TYPE = CONTENT_TYPE_LATEST

TEMPERATURE = "temperature"
PRESSURE = "pressure"
HUMIDITY = "humidity"

_GAUGE_DEFINITIONS = (
    (TEMPERATURE, "meter_temperature_celsius", "Ambient temperature in Celsius"),
    (PRESSURE, "meter_pressure_pascals", "Atmospheric pressure in Pascals"),
    (HUMIDITY, "meter_humidity_percent", "Relative humidity in %"),
)

METRIC_NAMES: Dict[str, str] = {kind: name for kind, name, _ in _GAUGE_DEFINITIONS}


class MetricRegistry:
    """Owns a private collector registry holding the exporter's gauges.

    ``update`` and ``encode`` share one lock, so an encoded body never mixes
    channels from two different measurements.
    """

    def __init__(self) -> None:
        self.collector_registry = CollectorRegistry(auto_describe=True)
        self._gauges: Dict[str, Gauge] = {
            kind: Gauge(name, documentation, registry=self.collector_registry)
            for kind, name, documentation in _GAUGE_DEFINITIONS
        }
        self._lock = Lock()

    def set(self, name: str, value: float) -> None:
        try:
            gauge = self._gauges[name]
        except KeyError as exc:
            raise KeyError(f"Unknown gauge {name!r}.") from exc
        with self._lock:
            gauge.set(value)

    def update(self, measurement: Measurement) -> None:
        with self._lock:
            self._gauges[TEMPERATURE].set(measurement.temperature)
            self._gauges[PRESSURE].set(measurement.pressure)
            self._gauges[HUMIDITY].set(measurement.humidity)

    def encode(self) -> bytes:
        with self._lock:
            try:
                return generate_latest(self.collector_registry)
            except Exception as exc:  # noqa: BLE001 - any collector failure is an encoding defect
                raise EncodingError(f"Failed to encode metrics: {exc}") from exc
