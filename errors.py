"""Exception types shared by the sensor driver, the gate and the HTTP layer."""

from __future__ import annotations

from typing import Optional


class MeterError(Exception):
    """Base class for exporter failures."""


class InitError(MeterError):
    """The bus could not be opened or the sensor rejected initialization."""


class SensorError(MeterError):
    """A single hardware transaction failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class EncodingError(MeterError):
    """Serializing the registered gauges failed."""
