"""Serialized access to the single sensor handle."""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from threading import Lock
from typing import Optional

from smbus2 import SMBus

from errors import InitError, SensorError
from models.measurement import Measurement
from sensors.bme280 import BME280
from sensors.interface import SensorDriver
from services.registry import MetricRegistry
from settings import get_settings

logger = logging.getLogger(__name__)


class MeasurementGate:
    """Allows at most one hardware transaction in flight and publishes results."""

    def __init__(
        self,
        driver: SensorDriver,
        registry: MetricRegistry,
        acquire_timeout: Optional[float] = None,
    ) -> None:
        self.driver = driver
        self.registry = registry
        self.acquire_timeout = acquire_timeout
        self._lock = Lock()

    def measure(self) -> Measurement:
        """Read the sensor once and write the result into the registry.

        Blocks until no other read is in progress. The registry is only
        touched when the read succeeds.
        """
        timeout = -1 if self.acquire_timeout is None else self.acquire_timeout
        if not self._lock.acquire(timeout=timeout):
            raise SensorError(
                f"Timed out after {self.acquire_timeout}s waiting for exclusive sensor access."
            )
        try:
            start_time = time.perf_counter()
            try:
                measurement = self.driver.measure()
            except SensorError:
                raise
            except Exception as exc:  # noqa: BLE001 - driver faults surface as SensorError
                raise SensorError(f"Sensor read failed: {exc}", cause=exc) from exc
            self.registry.update(measurement)
        finally:
            self._lock.release()

        logger.debug(
            "Sensor read complete",
            extra={"duration_ms": round((time.perf_counter() - start_time) * 1000, 2)},
        )
        return measurement

    def close(self) -> None:
        with self._lock:
            self.driver.close()


def open_gate(
    driver: SensorDriver,
    registry: Optional[MetricRegistry] = None,
    acquire_timeout: Optional[float] = None,
) -> MeasurementGate:
    """Initialize ``driver`` and wrap it in a gate. Raises InitError on failure."""
    try:
        driver.init()
    except Exception as exc:  # noqa: BLE001 - every init failure is fatal
        raise InitError(f"Sensor initialization failed: {exc}") from exc
    return MeasurementGate(
        driver=driver,
        registry=registry if registry is not None else MetricRegistry(),
        acquire_timeout=acquire_timeout,
    )


@lru_cache
def build_default_gate() -> MeasurementGate:
    settings = get_settings()
    try:
        bus = SMBus(settings.i2c_device)
    except OSError as exc:
        raise InitError(f"Unable to open I2C bus {settings.i2c_device!r}: {exc}") from exc

    driver = BME280(bus, address=settings.i2c_address)
    try:
        gate = open_gate(driver, acquire_timeout=settings.acquire_timeout)
    except InitError:
        bus.close()
        raise
    logger.info(
        "Sensor ready",
        extra={"device": settings.i2c_device, "address": f"0x{settings.i2c_address:02X}"},
    )
    return gate
