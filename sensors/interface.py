from __future__ import annotations

from typing import Protocol

from models.measurement import Measurement


class SensorDriver(Protocol):
    """
    Minimal interface the measurement gate needs from a sensor.
    One instance represents one opened physical device.
    """

    def init(self) -> None:
        """Run the device initialization sequence. Raises SensorError on failure."""
        ...

    def measure(self) -> Measurement:
        """Perform one blocking hardware read. Raises SensorError on failure."""
        ...

    def close(self) -> None:
        ...
