"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Measurement:
    """One compensated BME280 sample."""

    temperature: float  # degrees Celsius
    pressure: float  # Pascals
    humidity: float  # percent relative humidity
