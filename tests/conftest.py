from __future__ import annotations

import struct
import threading
import time
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from models.measurement import Measurement
from sensors.bme280 import REG_CALIB_H, REG_CALIB_TP, REG_CHIP_ID, REG_DATA, REG_STATUS
from services.gate import MeasurementGate
from services.registry import MetricRegistry

DEFAULT_READING = Measurement(temperature=21.5, pressure=101325.0, humidity=45.0)

# Trimming values from the Bosch BMP280 datasheet worked example; humidity
# trimming reduces the humidity formula to adc_h / 4.
TP_BLOCK = struct.pack(
    "<HhhHhhhhhhhhxB",
    27504, 26435, -1000,
    36477, -10685, 3024, 2855, 140, -7, 15500, -14600, 6000,
    0,
)
H_BLOCK = struct.pack("<hBbBbb", 16384, 0, 0, 0, 0, 0)

# adc_P = 415148, adc_T = 519888, adc_H = 200
DATA = [101, 90, 192, 126, 237, 0, 0, 200]


class FakeBus:
    """Register map standing in for an ``smbus2.SMBus`` with a BME280 attached."""

    def __init__(self, registers: Optional[Dict[int, int]] = None) -> None:
        self.registers: Dict[int, int] = {REG_CHIP_ID: 0x60, REG_STATUS: 0x00}
        self._load(REG_CALIB_TP, TP_BLOCK)
        self._load(REG_CALIB_H, H_BLOCK)
        self._load(REG_DATA, bytes(DATA))
        self.registers.update(registers or {})
        self.writes: List[Tuple[int, int]] = []
        self.addresses: List[int] = []
        self.error: Optional[OSError] = None
        self.closed = False

    def _load(self, start: int, data: bytes) -> None:
        for offset, value in enumerate(data):
            self.registers[start + offset] = value

    def _check(self, address: int) -> None:
        self.addresses.append(address)
        if self.error is not None:
            raise self.error

    def read_byte_data(self, address: int, register: int) -> int:
        self._check(address)
        return self.registers.get(register, 0)

    def write_byte_data(self, address: int, register: int, value: int) -> None:
        self._check(address)
        self.writes.append((register, value))

    def read_i2c_block_data(self, address: int, register: int, length: int) -> List[int]:
        self._check(address)
        return [self.registers.get(register + offset, 0) for offset in range(length)]

    def close(self) -> None:
        self.closed = True


class FakeDriver:
    """In-memory sensor that records overlapping ``measure`` calls."""

    def __init__(
        self,
        readings: Optional[Sequence[Measurement]] = None,
        error: Optional[Exception] = None,
        init_error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.readings: List[Measurement] = list(readings or [DEFAULT_READING])
        self.error = error
        self.init_error = init_error
        self.delay = delay
        self.calls = 0
        self.initialized = False
        self.closed = False
        self.max_active = 0
        self.entered = threading.Event()
        self._active = 0
        self._guard = threading.Lock()

    def init(self) -> None:
        if self.init_error is not None:
            raise self.init_error
        self.initialized = True

    def measure(self) -> Measurement:
        with self._guard:
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        self.entered.set()
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            reading = self.readings[min(self.calls, len(self.readings) - 1)]
            self.calls += 1
            return reading
        finally:
            with self._guard:
                self._active -= 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def gate(driver: FakeDriver) -> MeasurementGate:
    return MeasurementGate(driver=driver, registry=MetricRegistry())


@pytest.fixture
def api_client(gate: MeasurementGate) -> Iterator[TestClient]:
    app = create_app(gate=gate)
    with TestClient(app) as client:
        yield client
